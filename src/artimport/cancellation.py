"""Graceful interruption of import runs."""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Optional


def register_cancellation_handlers(cancel_event: Optional[threading.Event] = None) -> threading.Event:
    """
    Route SIGINT/SIGTERM to a cancellation event.

    The first signal sets the event so the pipeline stops after the records
    already in flight and still writes its report. A second signal raises
    KeyboardInterrupt and stops immediately.

    Returns:
        The event the pipeline should watch
    """
    event = cancel_event or threading.Event()

    def signal_handler(signum: int, frame) -> None:
        if event.is_set():
            logging.warning(f"Received signal {signum} again, aborting")
            raise KeyboardInterrupt
        logging.warning(f"Received signal {signum}, finishing in-flight records before stopping...")
        event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)
    return event


@contextmanager
def cancellation_scope() -> Iterator[threading.Event]:
    """Install the cancellation handlers for one run and restore the previous ones after."""
    previous = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield register_cancellation_handlers()
    finally:
        for sig, handler in previous.items():
            if handler is not None:
                signal.signal(sig, handler)
