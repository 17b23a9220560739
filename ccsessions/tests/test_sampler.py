import tempfile
import unittest
from pathlib import Path

from ccsessions.errors import SessionIOError
from ccsessions.parsers import sampler


class SamplerTests(unittest.TestCase):
    def _write(self, content: str) -> Path:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "transcript.jsonl"
        path.write_bytes(content.encode("utf-8"))
        return path

    def test_head_lines_respects_limit(self) -> None:
        path = self._write("one\ntwo\nthree\nfour\n")
        self.assertEqual(sampler.head_lines(path, limit=2), ["one", "two"])
        self.assertEqual(sampler.head_lines(path, limit=10), ["one", "two", "three", "four"])
        self.assertEqual(sampler.head_lines(path, limit=0), [])

    def test_tail_drops_partial_first_line(self) -> None:
        path = self._write("aaaa\nbbbb\ncccc\n")
        self.assertEqual(sampler.tail_lines(path, size=7), ["cccc"])

    def test_tail_keeps_line_starting_on_window_boundary(self) -> None:
        path = self._write("aaaa\nbbbb\ncccc\n")
        self.assertEqual(sampler.tail_lines(path, size=5), ["cccc"])
        self.assertEqual(sampler.tail_lines(path, size=10), ["bbbb", "cccc"])

    def test_tail_window_larger_than_file_returns_everything(self) -> None:
        path = self._write("aaaa\nbbbb\ncccc")
        self.assertEqual(sampler.tail_lines(path, size=4096), ["aaaa", "bbbb", "cccc"])

    def test_tail_of_empty_window(self) -> None:
        path = self._write("aaaa\n")
        self.assertEqual(sampler.tail_lines(path, size=0), [])

    def test_tail_with_no_newline_inside_window(self) -> None:
        path = self._write("a" * 100)
        self.assertEqual(sampler.tail_lines(path, size=10), [])

    def test_invalid_utf8_is_replaced(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "bad.jsonl"
        path.write_bytes(b"ok\n\xff\xfe broken\n")
        lines = sampler.tail_lines(path, size=4096)
        self.assertEqual(lines[0], "ok")
        self.assertIn("broken", lines[1])
        self.assertEqual(len(list(sampler.iter_lines(path))), 2)

    def test_missing_file_raises_session_io_error(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        missing = Path(tmpdir.name) / "gone.jsonl"

        with self.assertRaises(SessionIOError):
            sampler.head_lines(missing)
        with self.assertRaises(SessionIOError):
            sampler.tail_lines(missing)
        with self.assertRaises(SessionIOError) as ctx:
            list(sampler.iter_lines(missing))
        self.assertEqual(ctx.exception.path, missing)


if __name__ == "__main__":
    unittest.main()
