from unittest.mock import AsyncMock, MagicMock

import pytest
from botbuilder.core import MemoryStorage, UserState
from botbuilder.core.adapters import TestAdapter
from botbuilder.schema import Activity, ActivityTypes, ChannelAccount

from ohmybot.bot import OhMyBot
from ohmybot.clarify import FollowUpScheduler
from ohmybot.traffic import TrafficLog


@pytest.fixture
def proactive():
    adapter = MagicMock()
    adapter.continue_conversation = AsyncMock()
    return adapter


@pytest.fixture
def bot(dispatcher, proactive, tmp_path):
    return OhMyBot(
        dispatcher,
        UserState(MemoryStorage()),
        adapter=proactive,
        scheduler=FollowUpScheduler(delay=0),
        traffic=TrafficLog(tmp_path / "traffic.log"),
    )


@pytest.fixture
def adapter(bot):
    return TestAdapter(bot.on_turn)


def _from(user_id, text):
    return Activity(
        type=ActivityTypes.message,
        text=text,
        from_property=ChannelAccount(id=user_id, name=user_id),
    )


async def _say(adapter, user_id, text):
    adapter.activity_buffer.clear()
    await adapter.receive_activity(_from(user_id, text))
    return [a.text for a in adapter.activity_buffer if a.type == ActivityTypes.message]


@pytest.mark.asyncio
async def test_rant_and_retro_end_to_end(adapter):
    assert await _say(adapter, "alice", "Great day #worklife") == ["Thanks bud!"]
    assert await _say(adapter, "bob", "\\\\retro #worklife;;bypass=yes") == [
        "Here's what some people said...\n1. Great day "
    ]


@pytest.mark.asyncio
async def test_typing_indicator_precedes_reply(adapter):
    await adapter.receive_activity(_from("alice", "hi"))
    types = [a.type for a in adapter.activity_buffer]
    assert types == [ActivityTypes.typing, ActivityTypes.message]


@pytest.mark.asyncio
async def test_unknown_text(adapter):
    assert await _say(adapter, "alice", "what's up") == ["I don't know what you meant :("]


@pytest.mark.asyncio
async def test_clarification_round_trip(adapter, bot, proactive):
    await _say(adapter, "alice", "meh #standup")
    await _say(adapter, "bob", "\\ #standup;;bypass=yes")

    assert await _say(adapter, "bob", "clarify 1") == [
        "I've asked them to elaborate. Their answer will show up next time you look."
    ]
    await bot.scheduler.drain()

    proactive.continue_conversation.assert_awaited_once()
    reference, prompt = proactive.continue_conversation.call_args.args[:2]
    assert reference.user.id == "alice"
    ctx = MagicMock()
    ctx.send_activity = AsyncMock()
    await prompt(ctx)
    assert '"meh"' in ctx.send_activity.call_args.args[0]

    assert await _say(adapter, "alice", "it runs for an hour") == ["Thanks for clarifying!"]
    assert await _say(adapter, "bob", "\\ #standup;;bypass=yes") == [
        "Here's what some people said...\n1. meh \n    > it runs for an hour"
    ]


@pytest.mark.asyncio
async def test_clarify_before_any_retro(adapter, proactive, bot):
    assert await _say(adapter, "bob", "clarify 1") == ["That's not a real message!"]
    await bot.scheduler.drain()
    proactive.continue_conversation.assert_not_awaited()


@pytest.mark.asyncio
async def test_failed_delivery_drops_dialog(adapter, bot, proactive, dispatcher):
    proactive.continue_conversation.side_effect = RuntimeError("conversation gone")
    await _say(adapter, "alice", "meh #standup")
    await _say(adapter, "bob", "\\ #standup;;bypass=yes")
    await _say(adapter, "bob", "clarify 1")
    await bot.scheduler.drain()

    assert dispatcher.dialogs.pending_for("alice") is None
    assert await _say(adapter, "alice", "hi") != ["Thanks for clarifying!"]


@pytest.mark.asyncio
async def test_turns_are_written_to_traffic_log(adapter, tmp_path):
    await _say(adapter, "alice", "nope")
    lines = (tmp_path / "traffic.log").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    assert '"event": "turn"' in lines[0]
    assert "UnrecognizedCommand" in lines[0]


@pytest.mark.asyncio
async def test_empty_message(adapter):
    assert await _say(adapter, "alice", "   ") == ["Say something and I'll try to help!"]


@pytest.mark.asyncio
async def test_welcome_new_members(adapter):
    await adapter.receive_activity(
        Activity(
            type=ActivityTypes.conversation_update,
            members_added=[ChannelAccount(id="alice", name="alice")],
        )
    )
    [welcome] = [a.text for a in adapter.activity_buffer]
    assert "#hashtag" in welcome
