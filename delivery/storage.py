"""
Submission storage: one JSON file per submission (default) or a Supabase table.
Both raise PersistenceError on failure; SubmissionSink turns that into saved=False.
"""
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from robochat.core.errors import PersistenceError

logger = logging.getLogger(__name__)

SUBMISSIONS_TABLE = "contact_submissions"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class SubmissionRecord:
    data: dict[str, str]
    timestamp: str = field(default_factory=_now_iso)
    source_ip: str | None = None

    def to_dict(self) -> dict:
        out = {"timestamp": self.timestamp, "data": dict(self.data)}
        if self.source_ip:
            out["source_ip"] = self.source_ip
        return out

    @classmethod
    def from_dict(cls, raw: dict) -> "SubmissionRecord":
        return cls(data=dict(raw.get("data") or {}), timestamp=raw.get("timestamp") or _now_iso(), source_ip=raw.get("source_ip"))


def safe_timestamp(timestamp: str) -> str:
    """ISO-8601 timestamp usable in a file name (':' and '.' become '-')."""
    return re.sub(r"[:.]", "-", timestamp)


class FileSubmissionStore:
    """Writes contact-<timestamp>.json files. Files are created exclusively, so concurrent submissions never overwrite each other."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def save(self, record: SubmissionRecord) -> str:
        stem = f"contact-{safe_timestamp(record.timestamp)}"
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            path = self.directory / f"{stem}.json"
            n = 1
            while True:
                try:
                    with open(path, "x", encoding="utf-8") as f:
                        json.dump(record.to_dict(), f, ensure_ascii=False, indent=2)
                    break
                except FileExistsError:
                    path = self.directory / f"{stem}-{n}.json"
                    n += 1
        except OSError as e:
            raise PersistenceError("file", str(e)) from e
        logger.info("Contact data saved to %s", path.name)
        return str(path)

    def iter_records(self) -> Iterator[tuple[Path, SubmissionRecord]]:
        if not self.directory.is_dir():
            return
        for path in sorted(self.directory.glob("contact-*.json")):
            try:
                raw = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                logger.warning("Skipping unreadable submission %s: %s", path.name, e)
                continue
            yield path, SubmissionRecord.from_dict(raw)


class SupabaseSubmissionStore:
    """Inserts one row per submission into contact_submissions (timestamp, data jsonb, source_ip)."""

    def __init__(self, client, table: str = SUBMISSIONS_TABLE):
        self.client = client
        self.table = table

    def save(self, record: SubmissionRecord) -> str:
        if self.client is None:
            raise PersistenceError("supabase", "Supabase is not configured")
        payload = {
            "submitted_at": record.timestamp,
            "data": record.data,
            "source_ip": record.source_ip,
        }
        try:
            r = self.client.table(self.table).insert(payload).execute()
        except Exception as e:
            raise PersistenceError("supabase", str(e)) from e
        row_id = r.data[0].get("id") if r.data else None
        logger.info("Contact data saved to Supabase table %s (id=%s)", self.table, row_id)
        return f"{self.table}/{row_id}"
