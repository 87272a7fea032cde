import asyncio
from unittest.mock import AsyncMock

import pytest

from ohmybot.clarify import (
    ClarificationDialogs,
    ClarificationRequest,
    ClarificationState,
    FollowUpScheduler,
)
from ohmybot.errors import FeedbackNotFound


def _request(feedback_id=1, submitter_id="alice"):
    return ClarificationRequest(feedback_id, submitter_id, {"conversation": submitter_id}, "meh ")


def test_open_is_idempotent_per_user_and_feedback(store):
    dialogs = ClarificationDialogs(store)
    first = dialogs.open(_request())
    again = dialogs.open(_request())
    other = dialogs.open(_request(feedback_id=2))

    assert first is again
    assert other is not first
    assert first.state is ClarificationState.AWAITING_TARGET_TEXT
    assert len(dialogs) == 2


def test_pending_for_returns_oldest(store):
    dialogs = ClarificationDialogs(store)
    first = dialogs.open(_request(feedback_id=1))
    dialogs.open(_request(feedback_id=2))
    assert dialogs.pending_for("alice") is first
    assert dialogs.pending_for("bob") is None
    assert dialogs.pending_for(None) is None


def test_complete_appends_and_forgets(store):
    store.submit("meh #x", "alice", "addr")
    dialogs = ClarificationDialogs(store)
    dialog = dialogs.open(_request())

    dialogs.complete(dialog, "more details")

    assert dialog.state is ClarificationState.COMPLETE
    assert store.get(1).responses == ["more details"]
    assert dialogs.pending_for("alice") is None


def test_complete_on_missing_record_keeps_dialog(store):
    dialogs = ClarificationDialogs(store)
    dialog = dialogs.open(_request(feedback_id=7))
    with pytest.raises(FeedbackNotFound):
        dialogs.complete(dialog, "details")
    assert dialog.state is ClarificationState.AWAITING_TARGET_TEXT


def test_cancel(store):
    dialogs = ClarificationDialogs(store)
    dialog = dialogs.open(_request())
    dialogs.cancel(dialog)
    assert len(dialogs) == 0


@pytest.mark.asyncio
async def test_scheduler_runs_after_current_turn():
    scheduler = FollowUpScheduler(delay=0)
    fn = AsyncMock()

    scheduler.schedule(fn, "payload")
    fn.assert_not_awaited()
    assert scheduler.pending == 1

    await scheduler.drain()
    fn.assert_awaited_once_with("payload")


@pytest.mark.asyncio
async def test_scheduler_waits_for_delay():
    scheduler = FollowUpScheduler(delay=10)
    fn = AsyncMock()
    task = scheduler.schedule(fn, delay=0.01)
    await asyncio.sleep(0)
    fn.assert_not_awaited()
    await task
    fn.assert_awaited_once()


@pytest.mark.asyncio
async def test_scheduler_logs_failures(caplog):
    scheduler = FollowUpScheduler(delay=0)
    scheduler.schedule(AsyncMock(side_effect=RuntimeError("no route")))
    await scheduler.drain()
    assert "failed" in caplog.text


def test_unanswered_dialogs_expire(store, clock):
    dialogs = ClarificationDialogs(store, ttl=60, clock=clock)
    dialogs.open(_request(feedback_id=1))
    clock.advance(30)
    dialogs.open(_request(feedback_id=2))
    clock.advance(31)

    assert dialogs.pending_for("alice").request.feedback_id == 2
    assert len(dialogs) == 1
    clock.advance(30)
    assert dialogs.pending_for("alice") is None
    assert len(dialogs) == 0


def test_without_ttl_dialogs_stay_open(store, clock):
    dialogs = ClarificationDialogs(store, clock=clock)
    dialogs.open(_request())
    clock.advance(10 ** 9)
    assert dialogs.expire() == 0
    assert dialogs.pending_for("alice") is not None
