"""Cooperative cancellation for long-running searches."""

import logging
import threading
import time
from typing import Any, Optional

from src.exceptions import SearchCancelled

logger = logging.getLogger(__name__)


class CancellationToken:
    """Deadline-aware cancellation flag shared with a search.

    Engines call :meth:`raise_if_cancelled` between units of work (a
    forward-selection round, a sweep candidate).  The token is safe to
    cancel from another thread.

    Args:
        deadline_seconds: Optional wall-clock budget measured from
            construction.  ``None`` means no deadline.
    """

    def __init__(self, deadline_seconds: Optional[float] = None) -> None:
        if deadline_seconds is not None and deadline_seconds <= 0:
            raise ValueError(
                f"deadline_seconds must be positive, got {deadline_seconds}."
            )
        self._event = threading.Event()
        self._deadline = (
            time.monotonic() + deadline_seconds if deadline_seconds is not None else None
        )

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._event.set()
            return True
        return False

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or ``None`` without one."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self, stage: str, partial: Any = None) -> None:
        """Raise :class:`SearchCancelled` if cancellation was requested.

        Args:
            stage: Name of the calling search stage.
            partial: Results gathered so far, attached to the exception.

        Raises:
            SearchCancelled: If the token was cancelled or its deadline
                has passed.
        """
        if self.cancelled:
            logger.warning("Cancellation observed during %s.", stage)
            raise SearchCancelled(stage, partial)


def check_token(token: Optional[CancellationToken], stage: str, partial: Any = None) -> None:
    """Raise if ``token`` is set; a ``None`` token never cancels."""
    if token is not None:
        token.raise_if_cancelled(stage, partial)
