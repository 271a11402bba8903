"""Time-boxed undo for destructive library operations."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
from threading import Lock
from typing import Any, Callable
from uuid import uuid4

from quiz_shelf.constants.quiz_constants import UNDO_WINDOW_SECONDS
from quiz_shelf.core.models import utc_now
from quiz_shelf.core.services.scheduling import Scheduler, TimerHandle

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class UndoEnvelope:
    """A staged change that can still be reverted until ``expires_at``."""

    envelope_id: str
    snapshot: Any
    restore_action: Callable[[Any], None]
    expires_at: datetime
    timer: TimerHandle | None = None


class UndoCoordinator:
    """Holds independent undo envelopes, each with its own expiry timer."""

    def __init__(
        self,
        scheduler: Scheduler,
        clock: Callable[[], datetime] = utc_now,
        window_seconds: float = UNDO_WINDOW_SECONDS,
    ) -> None:
        self._lock = Lock()
        self._scheduler = scheduler
        self._clock = clock
        self._window_seconds = window_seconds
        self._envelopes: dict[str, UndoEnvelope] = {}

    def stage(
        self,
        snapshot: Any,
        restore_action: Callable[[Any], None],
        window_seconds: float | None = None,
    ) -> str:
        """Keep a private copy of ``snapshot`` and return the envelope id.

        ``restore_action`` receives that copy if the envelope is committed
        before the window closes.
        """
        window = self._window_seconds if window_seconds is None else window_seconds
        envelope_id = f"undo-{uuid4().hex}"
        envelope = UndoEnvelope(
            envelope_id=envelope_id,
            snapshot=copy.deepcopy(snapshot),
            restore_action=restore_action,
            expires_at=self._clock() + timedelta(seconds=window),
        )
        with self._lock:
            self._envelopes[envelope_id] = envelope
        envelope.timer = self._scheduler.call_later(window, lambda: self.expire(envelope_id))
        logger.debug("Staged %s for %.1f seconds", envelope_id, window)
        return envelope_id

    def commit(self, envelope_id: str) -> bool:
        """Run the restore action; returns False once the envelope is gone.

        If the restore action raises, the envelope stays pending until its
        window closes so the undo can be tried again.
        """
        with self._lock:
            envelope = self._envelopes.pop(envelope_id, None)
        if envelope is None:
            logger.debug("Nothing to undo for %s", envelope_id)
            return False
        try:
            envelope.restore_action(envelope.snapshot)
        except Exception:
            with self._lock:
                still_open = self._clock() < envelope.expires_at
                if still_open:
                    self._envelopes[envelope_id] = envelope
            if not still_open and envelope.timer is not None:
                envelope.timer.cancel()
            raise
        if envelope.timer is not None:
            envelope.timer.cancel()
        logger.info("Undo %s committed", envelope_id)
        return True

    def expire(self, envelope_id: str) -> bool:
        """Drop the envelope, making the staged change permanent."""
        with self._lock:
            envelope = self._envelopes.pop(envelope_id, None)
        if envelope is None:
            return False
        if envelope.timer is not None:
            envelope.timer.cancel()
        logger.debug("Undo window for %s closed", envelope_id)
        return True

    def dismiss(self, envelope_id: str) -> bool:
        return self.expire(envelope_id)

    def has_pending(self, envelope_id: str) -> bool:
        with self._lock:
            return envelope_id in self._envelopes

    def get_pending_ids(self) -> list[str]:
        with self._lock:
            return list(self._envelopes)

    def get_expiry(self, envelope_id: str) -> datetime | None:
        with self._lock:
            envelope = self._envelopes.get(envelope_id)
        return envelope.expires_at if envelope else None
