"""Ordered, fire-and-forget progress reporting."""

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

ProgressSink = Callable[[str], None]


class ProgressReporter:
    """Forward human-readable status messages to a caller-supplied sink.

    Messages are delivered in the order they are reported. A failing sink
    never interrupts the pipeline.
    """

    def __init__(self, sink: ProgressSink | None = None):
        self._sink = sink

    def __call__(self, message: str) -> None:
        logger.info(message)
        if self._sink is None:
            return
        try:
            self._sink(message)
        except Exception as e:
            logger.debug(f"Progress sink raised, ignoring: {e}")


def as_reporter(progress: "ProgressReporter | ProgressSink | None") -> ProgressReporter:
    """Wrap a bare callable (or nothing) as a ProgressReporter."""
    if isinstance(progress, ProgressReporter):
        return progress
    return ProgressReporter(progress)
