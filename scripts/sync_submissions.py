#!/usr/bin/env python3
"""
Upload file-stored contact submissions into the Supabase contact_submissions table.
Usage: python scripts/sync_submissions.py [data-dir] [--delete]

data-dir defaults to CONTACT_DATA_DIR (./contact-data). With --delete, each file is
removed after its row was inserted.
"""
import sys
from pathlib import Path

# Project root
_root = Path(__file__).resolve().parent.parent
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))

from dotenv import load_dotenv
load_dotenv(_root / ".env")

from delivery.storage import FileSubmissionStore, SupabaseSubmissionStore
from robochat.core.config import get_settings
from robochat.core.errors import PersistenceError
from robochat.core.supabase_client import get_supabase_client


def main() -> None:
    args = [a for a in sys.argv[1:] if not a.startswith("--")]
    delete = "--delete" in sys.argv[1:]
    data_dir = Path(args[0]) if args else get_settings().contact_data_dir
    if not data_dir.is_dir():
        print("Directory not found:", data_dir)
        sys.exit(1)
    client = get_supabase_client()
    if not client:
        print("Supabase not configured (SUPABASE_URL + SUPABASE_SERVICE_ROLE_KEY).")
        sys.exit(1)

    source = FileSubmissionStore(data_dir)
    target = SupabaseSubmissionStore(client)
    uploaded = failed = 0
    for path, record in source.iter_records():
        try:
            target.save(record)
        except PersistenceError as e:
            print("Error at", path.name, e)
            failed += 1
            continue
        uploaded += 1
        print("Inserted:", path.name)
        if delete:
            path.unlink()
    print(f"Done. {uploaded} uploaded, {failed} failed.")


if __name__ == "__main__":
    main()
