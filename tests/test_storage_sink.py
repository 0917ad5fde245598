import json
import smtplib

import pytest

from conftest import BrokenStore, RecordingNotifier
from delivery import email as email_mod
from delivery.sink import SubmissionSink, build_sink
from delivery.storage import (
    FileSubmissionStore,
    SubmissionRecord,
    SupabaseSubmissionStore,
    safe_timestamp,
)
from robochat.core.config import Settings
from robochat.core.errors import PersistenceError

DATA = {"name": "Alice", "phone": "13812345678", "email": "alice@example.com"}
EMAIL_ENV = (
    "EMAIL_SMTP_HOST", "EMAIL_SMTP_USER", "EMAIL_SMTP_PASSWORD", "EMAIL_SMTP_PORT",
    "SMTP_USER", "SMTP_PASS", "SENDGRID_API_KEY", "CONTACT_RECIPIENT_EMAIL", "SUBMISSION_STORE",
)


@pytest.fixture
def no_email_env(monkeypatch):
    for name in EMAIL_ENV:
        monkeypatch.delenv(name, raising=False)


def test_safe_timestamp():
    assert safe_timestamp("2024-05-01T10:20:30.123456+00:00") == "2024-05-01T10-20-30-123456+00-00"


def test_file_store_writes_one_json_file(tmp_path):
    store = FileSubmissionStore(tmp_path / "data")
    record = SubmissionRecord(DATA, timestamp="2024-05-01T10:20:30+00:00", source_ip="198.51.100.7")

    location = store.save(record)

    path = tmp_path / "data" / "contact-2024-05-01T10-20-30+00-00.json"
    assert location == str(path)
    assert json.loads(path.read_text(encoding="utf-8")) == {
        "timestamp": "2024-05-01T10:20:30+00:00",
        "data": DATA,
        "source_ip": "198.51.100.7",
    }


def test_same_timestamp_never_overwrites(tmp_path):
    store = FileSubmissionStore(tmp_path)
    first = store.save(SubmissionRecord({"name": "A"}, timestamp="2024-05-01T00:00:00+00:00"))
    second = store.save(SubmissionRecord({"name": "B"}, timestamp="2024-05-01T00:00:00+00:00"))
    third = store.save(SubmissionRecord({"name": "C"}, timestamp="2024-05-01T00:00:00+00:00"))

    assert len({first, second, third}) == 3
    assert second.endswith("-1.json") and third.endswith("-2.json")
    names = [r.data["name"] for _, r in store.iter_records()]
    assert sorted(names) == ["A", "B", "C"]


def test_file_store_failure_raises_persistence_error(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")
    store = FileSubmissionStore(blocker)
    with pytest.raises(PersistenceError) as exc_info:
        store.save(SubmissionRecord(DATA))
    assert exc_info.value.stage == "file"


def test_iter_records_skips_unreadable_files(tmp_path):
    store = FileSubmissionStore(tmp_path)
    store.save(SubmissionRecord(DATA, timestamp="2024-05-01T00:00:00+00:00"))
    (tmp_path / "contact-broken.json").write_text("{not json", encoding="utf-8")
    records = list(store.iter_records())
    assert len(records) == 1
    assert records[0][1].data == DATA


def test_record_to_dict_omits_missing_ip():
    record = SubmissionRecord({"a": "1"}, timestamp="t")
    assert record.to_dict() == {"timestamp": "t", "data": {"a": "1"}}
    assert SubmissionRecord.from_dict(record.to_dict()) == record


class FakeTable:
    def __init__(self, fail=False):
        self.fail = fail
        self.rows = []

    def insert(self, payload):
        self.rows.append(payload)
        return self

    def execute(self):
        if self.fail:
            raise RuntimeError("relation does not exist")
        return type("Result", (), {"data": [{"id": 7}]})()


class FakeSupabase:
    def __init__(self, table):
        self._table = table
        self.names = []

    def table(self, name):
        self.names.append(name)
        return self._table


def test_supabase_store_inserts_row():
    table = FakeTable()
    client = FakeSupabase(table)
    store = SupabaseSubmissionStore(client)
    assert store.save(SubmissionRecord(DATA, timestamp="t", source_ip="1.2.3.4")) == "contact_submissions/7"
    assert client.names == ["contact_submissions"]
    assert table.rows == [{"submitted_at": "t", "data": DATA, "source_ip": "1.2.3.4"}]


def test_supabase_store_errors_become_persistence_errors():
    with pytest.raises(PersistenceError):
        SupabaseSubmissionStore(FakeSupabase(FakeTable(fail=True))).save(SubmissionRecord(DATA))
    with pytest.raises(PersistenceError):
        SupabaseSubmissionStore(None).save(SubmissionRecord(DATA))


# ---- sink ----

def test_sink_saves_and_notifies(file_store):
    notifier = RecordingNotifier()
    outcome = SubmissionSink(file_store, notifier).submit(DATA, source_ip="10.0.0.1")
    assert outcome.saved and outcome.email_sent and outcome.success
    assert outcome.message == "Data saved and email sent successfully"
    assert notifier.records[0].data == DATA
    assert notifier.records[0].source_ip == "10.0.0.1"


def test_email_failure_does_not_undo_save(file_store):
    outcome = SubmissionSink(file_store, RecordingNotifier(result=False)).submit(DATA)
    assert outcome.saved and not outcome.email_sent
    assert outcome.success
    assert outcome.message == "Data saved (email not configured or sending failed)"
    assert len(list(file_store.iter_records())) == 1


def test_store_failure_still_attempts_email():
    notifier = RecordingNotifier()
    outcome = SubmissionSink(BrokenStore(), notifier).submit(DATA)
    assert not outcome.saved and outcome.email_sent
    assert not outcome.success
    assert outcome.location is None
    assert len(notifier.records) == 1


def test_sink_without_notifier(file_store):
    outcome = SubmissionSink(file_store).submit(DATA)
    assert outcome.saved and not outcome.email_sent


def test_sink_copies_the_data(file_store):
    data = dict(DATA)
    notifier = RecordingNotifier()
    SubmissionSink(file_store, notifier).submit(data)
    data["name"] = "changed"
    assert notifier.records[0].data["name"] == "Alice"


def test_build_sink_without_email(no_email_env, monkeypatch, tmp_path, contact_config):
    monkeypatch.setenv("CONTACT_DATA_DIR", str(tmp_path / "out"))
    sink = build_sink(Settings(), contact_config)
    assert isinstance(sink.store, FileSubmissionStore)
    assert sink.store.directory == tmp_path / "out"
    assert sink.notifier is None


def test_build_sink_with_smtp_and_recipient(no_email_env, monkeypatch, contact_config):
    monkeypatch.setenv("EMAIL_SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("EMAIL_SMTP_USER", "bot@example.com")
    monkeypatch.setenv("EMAIL_SMTP_PASSWORD", "secret")
    monkeypatch.setenv("CONTACT_RECIPIENT_EMAIL", "ops@example.com")
    sink = build_sink(Settings(), contact_config)
    assert sink.notifier is not None
    assert sink.notifier.keywords["recipient"] == "ops@example.com"
    assert sink.notifier.keywords["labels"] == contact_config.labels()


def test_build_sink_needs_a_recipient(no_email_env, monkeypatch, contact_config):
    monkeypatch.setenv("SENDGRID_API_KEY", "SG.x")
    # the packaged config has an empty targetEmail
    assert build_sink(Settings(), contact_config).notifier is None


# ---- email ----

def test_render_html_escapes_values():
    record = SubmissionRecord({"name": "<script>alert(1)</script>", "phone": ""}, timestamp="2024-05-01T00:00:00+00:00")
    body = email_mod.render_html(record, {"name": "Name", "phone": "Phone", "email": "Email"})
    assert "<script>" not in body
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in body
    assert body.count(email_mod.NOT_PROVIDED) == 2
    assert "2024-05-01T00:00:00+00:00" in body


def test_render_text_lists_fields_in_label_order():
    record = SubmissionRecord(DATA, timestamp="t", source_ip="1.2.3.4")
    text = email_mod.render_text(record, {"name": "Name", "phone": "Phone", "email": "Email"})
    lines = text.splitlines()
    assert lines.index("Name: Alice") < lines.index("Phone: 13812345678") < lines.index("Email: alice@example.com")
    assert "IP Address: 1.2.3.4" in lines


def test_send_without_configuration_returns_false(no_email_env):
    assert email_mod.send_submission_email(SubmissionRecord(DATA), {"name": "Name"}, "ops@example.com", "s") is False


class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host, self.port, self.timeout = host, port, timeout
        self.started_tls = False
        self.sent = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.started_tls = True

    def login(self, user, password):
        if password == "wrong":
            raise smtplib.SMTPAuthenticationError(535, b"bad credentials")

    def sendmail(self, sender, to, body):
        self.sent.append((sender, to, body))


@pytest.fixture
def smtp_env(no_email_env, monkeypatch):
    FakeSMTP.instances = []
    monkeypatch.setenv("EMAIL_SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("EMAIL_SMTP_USER", "bot@example.com")
    monkeypatch.setenv("EMAIL_SMTP_PASSWORD", "secret")
    monkeypatch.setattr(email_mod.smtplib, "SMTP_SSL", FakeSMTP)
    monkeypatch.setattr(email_mod.smtplib, "SMTP", FakeSMTP)


def test_smtp_send_on_implicit_tls_port(smtp_env):
    ok = email_mod.send_submission_email(SubmissionRecord(DATA), {"name": "Name"}, "a@x.com, b@x.com", "New contact")
    assert ok is True
    smtp = FakeSMTP.instances[0]
    assert smtp.port == 465 and not smtp.started_tls
    sender, to, _ = smtp.sent[0]
    assert sender == "bot@example.com"
    assert to == ["a@x.com", "b@x.com"]


def test_smtp_starttls_on_other_ports(smtp_env, monkeypatch):
    monkeypatch.setenv("EMAIL_SMTP_PORT", "587")
    assert email_mod.send_submission_email(SubmissionRecord(DATA), {"name": "Name"}, "a@x.com", "s") is True
    assert FakeSMTP.instances[0].started_tls


def test_smtp_failure_returns_false(smtp_env, monkeypatch):
    monkeypatch.setenv("EMAIL_SMTP_PASSWORD", "wrong")
    assert email_mod.send_submission_email(SubmissionRecord(DATA), {"name": "Name"}, "a@x.com", "s") is False


def test_raising_notifier_counts_as_not_sent(file_store):
    def notifier(record):
        raise RuntimeError("boom")

    outcome = SubmissionSink(file_store, notifier).submit(DATA)
    assert outcome.saved and not outcome.email_sent


def test_unparseable_smtp_port_falls_back_to_default(smtp_env, monkeypatch):
    monkeypatch.setenv("EMAIL_SMTP_PORT", "smtps")
    assert email_mod.send_submission_email(SubmissionRecord(DATA), {"name": "Name"}, "a@x.com", "s") is True
    assert FakeSMTP.instances[0].port == 465


def test_unexpected_smtp_error_returns_false(smtp_env, monkeypatch):
    def explode(self, user, password):
        raise UnicodeEncodeError("ascii", "pässword", 1, 2, "ordinal not in range(128)")

    monkeypatch.setattr(FakeSMTP, "login", explode)
    assert email_mod.send_submission_email(SubmissionRecord(DATA), {"name": "Name"}, "a@x.com", "s") is False
