"""
JSON-lines session log.

One file per run, ``session_<YYYYmmdd_HHMMSS>.jsonl`` under ``$MTUOPT_LOG_DIR``
(or ``./mtuopt_logs``).  The first line describes the session, every further
line is one rendered stage result.  Nothing touches the disk until the first
result arrives, and ``--no-log`` keeps everything in memory.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from mtuopt import __version__
from mtuopt.config import PLATFORM, SETTINGS
from mtuopt.core.utils import Status, TestResult, debug


class SessionLogger:
    """Process-wide log of stage results; use :meth:`get`."""

    _instance: Optional["SessionLogger"] = None

    def __init__(self, log_dir: str = "") -> None:
        self._dir = Path(log_dir or SETTINGS.log_dir or Path.cwd() / "mtuopt_logs")
        self._started = datetime.now()
        self._path = self._dir / f"session_{self._started:%Y%m%d_%H%M%S}.jsonl"
        self._results: list[TestResult] = []
        self.enabled = SETTINGS.log_enabled

    @classmethod
    def get(cls, log_dir: str = "") -> "SessionLogger":
        if cls._instance is None:
            cls._instance = cls(log_dir)
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        cls._instance = None

    @property
    def log_path(self) -> str:
        return str(self._path)

    @property
    def results(self) -> List[TestResult]:
        return list(self._results)

    def _header(self) -> dict:
        return {
            "session": self._started.isoformat(timespec="seconds"),
            "version": __version__,
            "platform": f"{PLATFORM.system} {PLATFORM.release}",
        }

    def _append(self, *records: dict) -> None:
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as fh:
                for record in records:
                    fh.write(json.dumps(record, ensure_ascii=False) + "\n")
        except OSError as exc:
            # a read-only working directory must not end the session
            debug(f"session log not written: {exc}")

    def log(self, result: TestResult) -> None:
        self._results.append(result)
        if not self.enabled:
            return
        record = asdict(result)
        record["status"] = result.status.value
        if len(self._results) == 1:
            self._append(self._header(), record)
        else:
            self._append(record)

    def summary(self) -> str:
        """One line for the end of the run: stage counts and where the log went."""
        if not self._results:
            return "No stages recorded in this session."
        counts = {status: 0 for status in Status}
        for r in self._results:
            counts[r.status] += 1
        failed = counts[Status.FAILURE] + counts[Status.ERROR]
        where = f"Log: {self._path}" if self.enabled else "Log: disabled"
        return (
            f"Session: {len(self._results)} stage(s), {counts[Status.SUCCESS]} passed, "
            f"{failed} failed, {counts[Status.PARTIAL]} partial.  {where}"
        )
