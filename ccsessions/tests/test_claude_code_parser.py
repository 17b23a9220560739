import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from ccsessions import config
from ccsessions.errors import InvalidFilename, MalformedEntry, SessionIOError
from ccsessions.parsers.platforms.claude_code.parser import (
    extract_project_name,
    extract_session_metadata,
    extract_text_content,
    parse_entry,
    session_id_from_path,
)
from ccsessions.parsers.platforms.registry import parse_session_file

SESSION_A = "11111111-1111-1111-1111-111111111111"
SESSION_B = "22222222-2222-2222-2222-222222222222"
SESSION_C = "33333333-3333-3333-3333-333333333333"


def _user(text, **extra) -> dict:
    entry = {"type": "user", "message": {"role": "user", "content": text}}
    entry.update(extra)
    return entry


class ClaudeCodeParserTests(unittest.TestCase):
    def _write_jsonl(self, lines: list, name: str = f"{SESSION_A}.jsonl") -> Path:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "-Users-me-code-widgets" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        rendered = [line if isinstance(line, str) else json.dumps(line) for line in lines]
        path.write_text("\n".join(rendered) + "\n", encoding="utf-8")
        return path

    def test_basic_metadata(self) -> None:
        path = self._write_jsonl(
            [
                {"type": "system", "cwd": "/Users/me/code/widgets"},
                _user("<command-name>/clear</command-name>"),
                _user("Add retry logic to the uploader"),
                {"type": "assistant", "message": {"role": "assistant", "content": "Sure."}},
                _user([{"type": "text", "text": "Also cover timeouts"}]),
                {"type": "summary", "summary": "Uploader retries"},
            ]
        )

        record = extract_session_metadata(path)

        self.assertIsNotNone(record)
        assert record is not None
        self.assertEqual(record.id, SESSION_A)
        self.assertEqual(record.project, "widgets")
        self.assertEqual(record.project_path, "/Users/me/code/widgets")
        self.assertEqual(record.first_message, "Add retry logic to the uploader")
        self.assertEqual(record.summary, "Uploader retries")
        self.assertEqual(record.turn_count, 2)
        self.assertEqual(record.source, "local")
        self.assertEqual(record.filepath, str(path))
        self.assertIsNone(record.forked_from)
        self.assertIsNotNone(record.modified.tzinfo)

    def test_first_fork_reference_wins_and_self_reference_is_ignored(self) -> None:
        path = self._write_jsonl(
            [
                _user("Continue the refactor", cwd="/Users/me/code/widgets", forkedFrom={"sessionId": SESSION_A}),
                {"type": "assistant", "forkedFrom": {"sessionId": SESSION_C}},
                {"type": "assistant", "forkedFrom": {"sessionId": SESSION_B}},
            ]
        )

        record = extract_session_metadata(path)

        assert record is not None
        self.assertEqual(record.forked_from, SESSION_C)

    def test_earliest_timestamped_fork_reference_wins(self) -> None:
        path = self._write_jsonl(
            [
                {"cwd": "/tmp/proj"},
                _user("hello"),
                {"type": "assistant", "timestamp": "2026-01-01T00:00:09Z", "forkedFrom": {"sessionId": SESSION_B}},
                {"type": "assistant", "timestamp": "2026-01-01T00:00:02Z", "forkedFrom": {"sessionId": SESSION_C}},
            ]
        )

        record = extract_session_metadata(path)

        assert record is not None
        self.assertEqual(record.forked_from, SESSION_C)

    def test_stamped_fork_reference_outranks_unstamped_one(self) -> None:
        path = self._write_jsonl(
            [
                _user("hello", cwd="/tmp/proj"),
                {"type": "assistant", "forkedFrom": {"sessionId": SESSION_C}},
                {"type": "assistant", "timestamp": "2026-01-01T00:00:05Z", "forkedFrom": {"sessionId": SESSION_B}},
                {"type": "assistant", "timestamp": "2026-01-01T00:00:05Z", "forkedFrom": {"sessionId": SESSION_C}},
            ]
        )

        record = extract_session_metadata(path)

        assert record is not None
        self.assertEqual(record.forked_from, SESSION_B)

    def test_fork_reference_as_plain_string(self) -> None:
        path = self._write_jsonl([_user("hi", cwd="/w", forkedFrom=SESSION_B)])
        record = extract_session_metadata(path)
        assert record is not None
        self.assertEqual(record.forked_from, SESSION_B)

    def test_non_uuid_filename_is_not_a_session(self) -> None:
        path = self._write_jsonl([_user("hello", cwd="/w")], name="agent-xyz.jsonl")

        self.assertIsNone(extract_session_metadata(path))
        self.assertIsNone(parse_session_file(path))
        with self.assertRaises(InvalidFilename):
            session_id_from_path(path)

    def test_only_noise_with_summary_has_zero_turns(self) -> None:
        path = self._write_jsonl(
            [
                _user("/compact", cwd="/Users/me/code/widgets"),
                _user("[Request interrupted by user]"),
                _user("<local-command-stdout>ok</local-command-stdout>"),
                {"type": "summary", "summary": "Compacted"},
            ]
        )

        record = extract_session_metadata(path)

        assert record is not None
        self.assertEqual(record.turn_count, 0)
        self.assertIsNone(record.first_message)
        self.assertEqual(record.summary, "Compacted")

    def test_last_custom_title_wins(self) -> None:
        path = self._write_jsonl(
            [
                _user("Start", cwd="/w"),
                {"type": "custom-title", "customTitle": "First name"},
                {"type": "assistant", "message": {"role": "assistant", "content": "ok"}},
                {"type": "custom-title", "customTitle": "  Better name  "},
                {"type": "custom-title", "customTitle": ""},
            ]
        )

        record = extract_session_metadata(path)

        assert record is not None
        self.assertEqual(record.custom_title, "Better name")

    def test_latest_summary_in_tail_wins(self) -> None:
        path = self._write_jsonl(
            [
                _user("Start", cwd="/w"),
                {"type": "summary", "summary": "Old"},
                {"type": "summary", "summary": "New"},
            ]
        )
        record = extract_session_metadata(path)
        assert record is not None
        self.assertEqual(record.summary, "New")

    def test_empty_session_is_skipped(self) -> None:
        path = self._write_jsonl(
            [
                {"type": "system", "subtype": "init"},
                _user("/clear"),
            ]
        )
        self.assertIsNone(extract_session_metadata(path))

    def test_malformed_lines_are_skipped(self) -> None:
        path = self._write_jsonl(
            [
                "{not json",
                "[1, 2, 3]",
                "",
                _user("Real question", cwd="/w"),
                '{"type": "user", "message": broken',
            ]
        )
        record = extract_session_metadata(path)
        assert record is not None
        self.assertEqual(record.first_message, "Real question")
        self.assertEqual(record.turn_count, 1)

    def test_first_message_is_normalized(self) -> None:
        long_prompt = "## Please   investigate why the nightly build fails on the arm64 runners only"
        path = self._write_jsonl([_user(long_prompt, cwd="/w")])
        record = extract_session_metadata(path)
        assert record is not None
        self.assertTrue(record.first_message.startswith("Please investigate"))
        self.assertTrue(record.first_message.endswith("..."))
        self.assertLessEqual(len(record.first_message), config.FIRST_MESSAGE_MAX_CHARS + 3)

    def test_turns_past_the_head_window_still_count(self) -> None:
        lines = [{"type": "system", "cwd": "/w"}] + [
            {"type": "assistant", "message": {"role": "assistant", "content": "..."}} for _ in range(5)
        ]
        lines.append(_user("Late question"))
        path = self._write_jsonl(lines)

        with mock.patch.object(config, "HEAD_LINES", 3):
            record = extract_session_metadata(path)

        assert record is not None
        self.assertIsNone(record.first_message)
        self.assertEqual(record.turn_count, 1)

    def test_assistant_role_in_user_entry_is_ignored(self) -> None:
        path = self._write_jsonl(
            [
                {"type": "user", "cwd": "/w", "message": {"role": "assistant", "content": "not a turn"}},
            ]
        )
        record = extract_session_metadata(path)
        assert record is not None
        self.assertEqual(record.turn_count, 0)

    def test_missing_file_raises(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        with self.assertRaises(SessionIOError):
            extract_session_metadata(Path(tmpdir.name) / f"{SESSION_A}.jsonl")

    def test_remote_source_is_recorded(self) -> None:
        path = self._write_jsonl([_user("hi", cwd="/w")])
        record = parse_session_file(path, source="devbox")
        assert record is not None
        self.assertEqual(record.source, "devbox")


class ParserHelperTests(unittest.TestCase):
    def test_project_name_from_cwd(self) -> None:
        self.assertEqual(extract_project_name("/Users/me/code/widgets", "ignored"), "widgets")
        self.assertEqual(extract_project_name("/Users/me/code/widgets/", "ignored"), "widgets")

    def test_project_name_from_encoded_directory(self) -> None:
        self.assertEqual(extract_project_name("", "-Users-me-Documents-repos-widgets"), "widgets")
        self.assertEqual(extract_project_name("", "-Users-me-repos-widgets"), "widgets")
        self.assertEqual(extract_project_name("", "-Users-me-scratch"), "scratch")
        self.assertEqual(extract_project_name("", "plain"), "plain")

    def test_parse_entry_rejects_non_objects(self) -> None:
        self.assertEqual(parse_entry('{"type": "user"}'), {"type": "user"})
        for line in ("", "   ", "[]", '"text"', "{bad"):
            with self.subTest(line=line):
                with self.assertRaises(MalformedEntry):
                    parse_entry(line)

    def test_extract_text_content(self) -> None:
        self.assertEqual(extract_text_content("plain"), "plain")
        self.assertEqual(
            extract_text_content([{"type": "tool_result", "content": "x"}, {"type": "text", "text": "hello"}]),
            "hello",
        )
        self.assertIsNone(extract_text_content([{"type": "image"}]))
        self.assertIsNone(extract_text_content(42))


if __name__ == "__main__":
    unittest.main()
