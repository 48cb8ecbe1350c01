from __future__ import annotations

import logging
import threading
from typing import Callable

from sqlalchemy.orm import Session

from lockerlend.core.errors import LendingError
from lockerlend.services.lending_service import run_expiry_sweep_service

logger = logging.getLogger("lockerlend.expiry")


class ExpirySweeper:
    """Runs the expiry sweep every `interval_seconds` on a daemon thread until stopped."""

    def __init__(self, *, session_factory: Callable[[], Session], interval_seconds: float) -> None:
        self._session_factory = session_factory
        self._interval_seconds = interval_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="lockerlend-expiry-sweeper", daemon=True)
        self._thread.start()
        logger.info("Expiry sweeper started interval=%ss", self._interval_seconds)

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self._interval_seconds)
            self._thread = None

    def sweep_once(self) -> dict[str, list[int]]:
        db = self._session_factory()
        try:
            result = run_expiry_sweep_service(db)
        finally:
            db.close()

        if result["expired"]:
            logger.info("Expiry sweep expired=%s skipped=%s", result["expired"], result["skipped"])
        return result

    def _run(self) -> None:
        while not self._stop.wait(self._interval_seconds):
            try:
                self.sweep_once()
            except LendingError as e:
                logger.error("Expiry sweep aborted: %s", e.message)
            except Exception:
                logger.exception("Expiry sweep failed, retrying next interval")
