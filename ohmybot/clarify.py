"""Clarification follow-ups.

Someone who retrieved feedback can ask the (anonymous) author of item N to
elaborate. The prompt reaches the author in their own conversation a moment
later; the author's next message is appended to the feedback record.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Set, Tuple

from .store import FeedbackStore

log = logging.getLogger(__name__)


class ClarificationState(str, Enum):
    AWAITING_TARGET_TEXT = "awaiting_target_text"
    COMPLETE = "complete"


@dataclass(frozen=True)
class ClarificationRequest:
    feedback_id: int
    submitter_id: str
    submitter_address: Any
    original_text: str


@dataclass
class Clarification:
    request: ClarificationRequest
    state: ClarificationState = ClarificationState.AWAITING_TARGET_TEXT
    opened_at: float = 0.0

    @property
    def key(self) -> Tuple[str, int]:
        return (self.request.submitter_id, self.request.feedback_id)


class ClarificationDialogs:
    def __init__(self, store: FeedbackStore, ttl: Optional[float] = None, clock: Callable[[], float] = time.time):
        self.store = store
        self.ttl = ttl  # seconds an unanswered dialog stays open; None keeps it forever
        self._clock = clock
        self._open: Dict[Tuple[str, int], Clarification] = {}

    def __len__(self):
        return len(self._open)

    def open(self, request: ClarificationRequest) -> Clarification:
        key = (request.submitter_id, request.feedback_id)
        dialog = self._open.get(key)
        if dialog is None:
            dialog = self._open[key] = Clarification(request, opened_at=self._clock())
            log.info("clarification opened for feedback id=%s", request.feedback_id)
        return dialog

    def pending_for(self, user_id: Optional[str]) -> Optional[Clarification]:
        if not user_id:
            return None
        self.expire()
        for (submitter_id, _), dialog in self._open.items():
            if submitter_id == user_id:
                return dialog
        return None

    def complete(self, dialog: Clarification, text: str) -> Clarification:
        self.store.append_response(dialog.request.feedback_id, text)
        dialog.state = ClarificationState.COMPLETE
        self._open.pop(dialog.key, None)
        log.info("clarification recorded for feedback id=%s", dialog.request.feedback_id)
        return dialog

    def cancel(self, dialog: Clarification) -> None:
        self._open.pop(dialog.key, None)

    def expire(self) -> int:
        if self.ttl is None:
            return 0
        cutoff = self._clock() - self.ttl
        stale = [key for key, dialog in self._open.items() if dialog.opened_at < cutoff]
        for key in stale:
            del self._open[key]
        if stale:
            log.info("expired %d unanswered clarification(s)", len(stale))
        return len(stale)


class FollowUpScheduler:
    """Runs follow-up coroutines as their own tasks, after the current turn."""

    def __init__(self, delay: float = 1.0):
        self.delay = delay
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, fn, *args, delay: Optional[float] = None) -> asyncio.Task:
        wait = self.delay if delay is None else delay
        task = asyncio.get_running_loop().create_task(self._run(wait, fn, *args))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, wait, fn, *args):
        if wait > 0:
            await asyncio.sleep(wait)
        try:
            await fn(*args)
        except Exception:
            log.exception("follow-up %s failed", getattr(fn, "__name__", fn))

    async def drain(self) -> None:
        while True:
            tasks = [t for t in self._tasks if not t.done()]
            if not tasks:
                return
            await asyncio.gather(*tasks)
