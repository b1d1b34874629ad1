"""User-abort signalling for running executors.

An :class:`AbortSignal` is a thread-safe flag the executor polls once per
iteration boundary.  :meth:`AbortSignal.handle_sigint` temporarily routes
Ctrl-C to the flag so an interrupted run still returns its best candidate.
"""

from __future__ import annotations

import logging
import signal
import threading
from contextlib import contextmanager
from typing import Iterator

logger = logging.getLogger(__name__)


class AbortSignal:
    """Flag requesting that a run stop at the next iteration boundary."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def set(self) -> None:
        """Request an abort.  Safe to call from any thread or signal handler."""
        self._event.set()

    def clear(self) -> None:
        self._event.clear()

    @property
    def is_set(self) -> bool:
        return self._event.is_set()

    @contextmanager
    def handle_sigint(self) -> Iterator[None]:
        """Route SIGINT to :meth:`set` for the duration of the block.

        Signal handlers can only be installed from the main thread; elsewhere
        the block runs without one.
        """
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not in main thread; SIGINT handler not installed")
            yield
            return

        def _handler(signum, frame):
            logger.info("Interrupt received; stopping after the current iteration")
            self.set()

        previous = signal.signal(signal.SIGINT, _handler)
        try:
            yield
        finally:
            signal.signal(signal.SIGINT, previous)
