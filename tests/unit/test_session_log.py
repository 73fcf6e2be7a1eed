import json
import os
import tempfile
import unittest

from mtuopt.core.session_log import SessionLogger
from mtuopt.core.utils import Status, TestResult


class TestSessionLogger(unittest.TestCase):
    def setUp(self) -> None:
        SessionLogger.reset()
        self.addCleanup(SessionLogger.reset)
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.log_dir = os.path.join(self._tmp.name, "logs")

    def test_singleton(self) -> None:
        self.assertIs(SessionLogger.get(self.log_dir), SessionLogger.get())

    def test_writes_json_lines(self) -> None:
        logger = SessionLogger(self.log_dir)
        logger.log(TestResult(title="MTU Discovery", status=Status.SUCCESS, target="1.1.1.1",
                              summary="Max payload: 1472 bytes"))
        logger.log(TestResult(title="Stability", status=Status.FAILURE, summary="loss"))

        with open(logger.log_path, encoding="utf-8") as fh:
            header, *rows = [json.loads(line) for line in fh]
        self.assertIn("version", header)
        self.assertEqual([r["title"] for r in rows], ["MTU Discovery", "Stability"])
        self.assertEqual(rows[0]["status"], "success")
        self.assertEqual(rows[0]["target"], "1.1.1.1")
        self.assertIn("1 passed, 1 failed", logger.summary())

    def test_disabled_keeps_memory_only(self) -> None:
        logger = SessionLogger(self.log_dir)
        logger.enabled = False
        logger.log(TestResult(title="x", status=Status.PARTIAL))
        self.assertFalse(os.path.exists(self.log_dir))
        self.assertEqual(len(logger.results), 1)
        self.assertIn("Log: disabled", logger.summary())

    def test_empty_summary(self) -> None:
        self.assertEqual(SessionLogger(self.log_dir).summary(), "No stages recorded in this session.")


if __name__ == "__main__":
    unittest.main(verbosity=2)
