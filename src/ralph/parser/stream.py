"""Stream pump — feed lines to an EventProcessor without stalling its status ticks.

A daemon thread reads lines into a queue; the consumer waits at most
poll_sec for each one and ticks the processor on every wake-up, so the
periodic status line keeps coming while the agent is silent.
"""
from __future__ import annotations

import logging
import queue
import threading
from typing import Iterable, Iterator, Optional

from ._constants import Signal
from .processor import EventProcessor

log = logging.getLogger(__name__)


def pump(
    lines: Iterable[str],
    processor: EventProcessor,
    poll_sec: float = 1.0,
) -> Iterator[Signal]:
    """Yield signals in arrival order. Closing the iterator early still finishes the processor."""
    q: "queue.Queue[Optional[str]]" = queue.Queue()

    def _reader() -> None:
        try:
            for line in lines:
                q.put(line)
        except (OSError, ValueError) as exc:
            # stdout closed under us when the child was terminated
            log.debug("stream reader stopped: %s", exc)
        finally:
            q.put(None)

    t = threading.Thread(target=_reader, daemon=True)
    t.start()
    processor.start()

    try:
        while True:
            try:
                line = q.get(timeout=poll_sec)
            except queue.Empty:
                processor.tick()
                continue
            if line is None:
                break
            for sig in processor.process_line(line):
                yield sig
            processor.tick()
    except GeneratorExit:
        processor.finish()
        raise

    for sig in processor.finish():
        yield sig
