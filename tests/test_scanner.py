"""
Unit tests for log scanning and event parsing.

Tests file enumeration, line streaming, record validation and dedup.
"""

import json
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from usage_wrapped.core.scanner import EventScanner, ScanStats, iter_json_lines, list_log_files
from usage_wrapped.core.token_counter import TokenUsage
from usage_wrapped.storage.models import RawEvent, parse_timestamp


def _record(message_id="msg_1", request_id="req_1", **overrides):
    record = {
        "timestamp": "2025-03-01T12:00:00.000Z",
        "sessionId": "session-a",
        "requestId": request_id,
        "message": {
            "id": message_id,
            "model": "claude-sonnet-4-20250514",
            "usage": {"input_tokens": 10, "output_tokens": 5},
        },
    }
    record.update(overrides)
    return record


class TestTimestampParsing:
    """Test timestamp parsing at the ingestion boundary."""

    def test_iso_with_z(self):
        assert parse_timestamp("2025-03-01T12:00:00.000Z") == datetime(2025, 3, 1, 12, tzinfo=timezone.utc)

    def test_iso_with_offset(self):
        parsed = parse_timestamp("2025-03-01T12:00:00+02:00")
        assert parsed == datetime(2025, 3, 1, 10, tzinfo=timezone.utc)

    def test_naive_is_utc(self):
        assert parse_timestamp("2025-03-01T12:00:00").tzinfo is not None

    def test_epoch_milliseconds(self):
        assert parse_timestamp(1735732800000) == datetime(2025, 1, 1, 12, tzinfo=timezone.utc)

    def test_invalid_values(self):
        """Test that unparseable timestamps are rejected."""
        for value in (None, "", "yesterday", True, [], {}):
            assert parse_timestamp(value) is None


class TestRawEvent:
    """Test strict record construction."""

    def test_full_record(self):
        """Test that all known fields are extracted."""
        event = RawEvent.from_record(_record(costUSD=0.25))
        assert event.timestamp == datetime(2025, 3, 1, 12, tzinfo=timezone.utc)
        assert event.session_id == "session-a"
        assert event.model == "claude-sonnet-4-20250514"
        assert event.usage == TokenUsage(input_tokens=10, output_tokens=5)
        assert event.cost_usd == 0.25
        assert event.identity_key == "msg_1:req_1"

    def test_non_object_is_rejected(self):
        """Test that JSON values other than objects give no event."""
        assert RawEvent.from_record([1, 2]) is None
        assert RawEvent.from_record("text") is None

    def test_identity_requires_both_ids(self):
        """Test that a missing identifier means no identity key."""
        assert RawEvent.from_record(_record(request_id=None)).identity_key is None
        assert RawEvent.from_record(_record(message_id="")).identity_key is None

    def test_blank_model_is_absent(self):
        """Test that empty or whitespace model strings are dropped."""
        record = _record()
        record["message"]["model"] = "   "
        assert RawEvent.from_record(record).model is None

    def test_mistyped_fields_are_absent(self):
        """Test that wrongly typed optional fields are treated as missing."""
        record = _record(costUSD="1.00", sessionId=42)
        record["message"]["usage"] = "lots"
        event = RawEvent.from_record(record)
        assert event.cost_usd is None
        assert event.session_id is None
        assert event.usage is None

    def test_missing_message_block(self):
        """Test records without a message block."""
        event = RawEvent.from_record({"timestamp": "2025-01-01T00:00:00Z"})
        assert event.usage is None
        assert event.model is None
        assert event.identity_key is None


class TestFileListing:
    """Test recursive log file enumeration."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.root = Path(self.temp_dir)

    def teardown_method(self):
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_recursive_and_filtered(self):
        """Test that nested log files are found and other files ignored."""
        (self.root / "a" / "b" / "c").mkdir(parents=True)
        (self.root / "top.jsonl").write_text("")
        (self.root / "a" / "b" / "c" / "deep.jsonl").write_text("")
        (self.root / "a" / "notes.txt").write_text("")
        (self.root / "a" / "data.json").write_text("")

        files = list_log_files(self.root)

        assert sorted(p.name for p in files) == ["deep.jsonl", "top.jsonl"]

    def test_stable_order(self):
        """Test that files are listed in sorted order."""
        for name in ("b.jsonl", "a.jsonl", "c.jsonl"):
            (self.root / name).write_text("")
        assert [p.name for p in list_log_files(self.root)] == ["a.jsonl", "b.jsonl", "c.jsonl"]

    def test_missing_root(self):
        """Test that a missing root lists nothing."""
        assert list_log_files(self.root / "nope") == []


class TestLineStreaming:
    """Test line-by-line JSON parsing."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.root = Path(self.temp_dir)

    def teardown_method(self):
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_blank_and_malformed_lines_skipped(self):
        """Test that malformed lines are counted and skipped silently."""
        path = self.root / "log.jsonl"
        path.write_text('{"a": 1}\n\n   \n{not json\n{"b": 2}\n')
        stats = ScanStats()

        records = list(iter_json_lines(path, stats))

        assert records == [{"a": 1}, {"b": 2}]
        assert stats.lines_read == 3
        assert stats.malformed_lines == 1

    def test_missing_file_is_skipped(self):
        """Test that a file deleted before reading is skipped."""
        stats = ScanStats()
        assert list(iter_json_lines(self.root / "gone.jsonl", stats)) == []
        assert stats.files_skipped == 1

    def test_invalid_utf8_only_drops_its_line(self):
        """Test that lines around an undecodable line are all kept."""
        path = self.root / "mixed.jsonl"
        path.write_bytes(
            b'{"a": 1}\n'
            b"\xff\xfe garbage\n"
            b'{"b": 2}\n'
            b'{"c": "caf\xe9"}\n'
            b'{"d": 4}\n'
        )
        stats = ScanStats()

        records = list(iter_json_lines(path, stats))

        assert records[:2] == [{"a": 1}, {"b": 2}]
        assert records[2]["c"].startswith("caf")
        assert records[3] == {"d": 4}
        assert stats.malformed_lines == 1
        assert stats.files_skipped == 0


class TestEventScanner:
    """Test deduplicated event scanning."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.root = Path(self.temp_dir) / "projects"
        self.root.mkdir()

    def teardown_method(self):
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write(self, relative: str, records) -> Path:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            for record in records:
                f.write((record if isinstance(record, str) else json.dumps(record)) + "\n")
        return path

    def test_duplicates_across_files_are_dropped(self):
        """Test that a repeated identity is emitted once across files."""
        self._write("p1/a.jsonl", [_record("m1", "r1"), _record("m2", "r2")])
        self._write("p2/b.jsonl", [_record("m1", "r1"), _record("m3", "r3")])
        scanner = EventScanner()

        events = list(scanner.scan_roots([self.root]))

        assert [e.identity_key for e in events] == ["m1:r1", "m2:r2", "m3:r3"]
        assert scanner.stats.duplicate_events == 1

    def test_records_without_identity_are_never_deduplicated(self):
        """Test that records lacking ids are all kept."""
        self._write("a.jsonl", [_record(request_id=None), _record(request_id=None)])
        events = list(EventScanner().scan_roots([self.root]))
        assert len(events) == 2

    def test_overlapping_roots_are_idempotent(self):
        """Test that scanning the same files twice yields the same events."""
        self._write("a.jsonl", [_record("m1", "r1"), _record("m2", "r2")])

        once = list(EventScanner().scan_roots([self.root]))
        twice = list(EventScanner().scan_roots([self.root, self.root]))

        assert once == twice

    def test_non_object_lines_are_counted_malformed(self):
        """Test that valid JSON which is not an object is skipped."""
        self._write("a.jsonl", ["[1, 2, 3]", '"text"', _record()])
        scanner = EventScanner()
        events = list(scanner.scan_roots([self.root]))
        assert len(events) == 1
        assert scanner.stats.malformed_lines == 2

    def test_bad_bytes_keep_surrounding_records(self):
        """Test that records on both sides of an undecodable line survive."""
        path = self.root / "a.jsonl"
        with open(path, "wb") as f:
            f.write(json.dumps(_record("m1", "r1")).encode() + b"\n")
            f.write(b"\xff\xfe\n")
            f.write(json.dumps(_record("m2", "r2")).encode() + b"\n")
            f.write(json.dumps(_record("m3", "r3")).encode() + b"\n")
        scanner = EventScanner()

        events = list(scanner.scan_roots([self.root]))

        assert [e.identity_key for e in events] == ["m1:r1", "m2:r2", "m3:r3"]
        assert scanner.stats.malformed_lines == 1
        assert scanner.stats.files_skipped == 0

    def test_missing_root_is_ignored(self):
        """Test that a root deleted before scanning is skipped."""
        assert list(EventScanner().scan_roots([self.root / "missing"])) == []

    def test_custom_extension(self):
        """Test scanning with a configured extension."""
        self._write("a.log", [_record()])
        self._write("b.jsonl", [_record("m2", "r2")])
        events = list(EventScanner(extension=".log").scan_roots([self.root]))
        assert len(events) == 1
        assert events[0].identity_key == "msg_1:req_1"
