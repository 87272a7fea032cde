import logging
from typing import Iterable, Optional

from botbuilder.core import ActivityHandler, MessageFactory, TurnContext, UserState
from botbuilder.schema import Activity, ActivityTypes, ChannelAccount
from botframework.connector.auth import ClaimsIdentity

from .clarify import ClarificationRequest, FollowUpScheduler
from .dispatcher import FeedbackDispatcher, Sender
from .replies import CLARIFY_PROMPT, GREETING
from .traffic import TrafficLog

log = logging.getLogger(__name__)

LAST_FEEDBACK_VIEW = "LastFeedbackView"


class OhMyBot(ActivityHandler):
    def __init__(
        self,
        dispatcher: FeedbackDispatcher,
        user_state: UserState,
        adapter=None,
        app_id: str = "",
        scheduler: Optional[FollowUpScheduler] = None,
        traffic: Optional[TrafficLog] = None,
    ):
        super().__init__()
        self.dispatcher = dispatcher
        self.user_state = user_state
        self.adapter = adapter
        self.app_id = app_id
        self.scheduler = scheduler or FollowUpScheduler()
        self.traffic = traffic or TrafficLog()
        self.last_view = user_state.create_property(LAST_FEEDBACK_VIEW)

    async def on_turn(self, turn_context: TurnContext):
        await super().on_turn(turn_context)
        await self.user_state.save_changes(turn_context)

    async def on_members_added_activity(
        self, members_added: Iterable[ChannelAccount], turn_context: TurnContext
    ):
        for member in members_added:
            if member.id != turn_context.activity.recipient.id:
                await turn_context.send_activity(MessageFactory.text(GREETING))

    async def on_message_activity(self, turn_context: TurnContext):
        act = turn_context.activity
        user_text = (act.text or "").strip()

        record = {
            "event": "turn",
            "request": {
                "text": user_text,
                "channelId": getattr(act, "channel_id", None),
                "conversationId": getattr(getattr(act, "conversation", None), "id", None),
            },
            "command": None,
            "response": None,
        }

        if not user_text:
            reply = "Say something and I'll try to help!"
            record["response"] = {"text": reply, "fallback": True}
            self.traffic.write(record)
            await turn_context.send_activity(reply)
            return

        await turn_context.send_activity(Activity(type=ActivityTypes.typing))

        sender = Sender(
            user_id=act.from_property.id if act.from_property else None,
            address=TurnContext.get_conversation_reference(act),
        )
        view = await self.last_view.get(turn_context, list)
        result = await self.dispatcher.handle(user_text, sender, view)

        if result.view is not None:
            await self.last_view.set(turn_context, result.view)
        for request in result.follow_ups:
            self.scheduler.schedule(self.deliver_clarification, request)

        record["command"] = result.kind.value if result.kind else None
        record["response"] = {"text": result.reply, "fallback": result.error is not None}
        if result.error is not None:
            record["error"] = f"{type(result.error).__name__}: {result.error}"
        self.traffic.write(record)
        await turn_context.send_activity(result.reply)

    async def deliver_clarification(self, request: ClarificationRequest):
        """Open the dialog and prompt the author in their own conversation."""
        dialog = self.dispatcher.dialogs.open(request)

        async def prompt(ctx: TurnContext):
            await ctx.send_activity(CLARIFY_PROMPT.format(text=request.original_text.strip()))

        try:
            if self.app_id:
                await self.adapter.continue_conversation(request.submitter_address, prompt, bot_id=self.app_id)
            else:  # Emulator without credentials
                anon = ClaimsIdentity({}, True, "anonymous")
                await self.adapter.continue_conversation(request.submitter_address, prompt, claims_identity=anon)
        except Exception:
            self.dispatcher.dialogs.cancel(dialog)
            raise
        self.traffic.write({"event": "clarification_prompt", "feedback_id": request.feedback_id})
