import logging
import math
from dataclasses import dataclass, field
from typing import Any, List, Optional

from .clarify import ClarificationDialogs, ClarificationRequest
from .commands import Command, CommandKind, is_truthy
from .errors import (
    FeedbackNotFound,
    InvalidClarificationTarget,
    NoHashtagFound,
    OhMyBotError,
    UnrecognizedCommand,
)
from .recognizers import PatternRecognizer
from .replies import CLARIFY_ASKED, CLARIFY_THANKS, GREETING, render_reply, reply_for_error
from .store import FeedbackStore
from .translation import Anonymizer, retrieve

log = logging.getLogger(__name__)


@dataclass
class Sender:
    user_id: Optional[str] = None
    address: Any = None  # opaque, e.g. a ConversationReference


@dataclass
class TurnResult:
    reply: str
    kind: Optional[CommandKind] = None
    view: Optional[List[dict]] = None  # new LastFeedbackView, set by retrievals
    follow_ups: List[ClarificationRequest] = field(default_factory=list)
    error: Optional[OhMyBotError] = None


class FeedbackDispatcher:
    def __init__(
        self,
        store: FeedbackStore,
        anonymizer: Anonymizer,
        dialogs: Optional[ClarificationDialogs] = None,
        recognizer=None,
        lookback: Optional[float] = None,
    ):
        self.store = store
        self.anonymizer = anonymizer
        self.dialogs = dialogs or ClarificationDialogs(store)
        self.recognizer = recognizer or PatternRecognizer()
        self.lookback = lookback
        self._handlers = {
            CommandKind.RANT: self.handle_rant,
            CommandKind.RETRO: self.handle_retro,
            CommandKind.GREETING: self.handle_greeting,
            CommandKind.CLARIFY: self.handle_clarify,
        }

    async def handle(self, text: str, sender: Sender, view: Optional[List[dict]] = None) -> TurnResult:
        text = text or ""
        command = await self.recognizer.recognize(text)

        # retrievals and clarify requests are never taken as an answer
        if command is None or command.kind not in (CommandKind.RETRO, CommandKind.CLARIFY):
            pending = self.dialogs.pending_for(sender.user_id)
            if pending is not None and text.strip():
                self.dialogs.complete(pending, text.strip())
                return TurnResult(reply=CLARIFY_THANKS, kind=CommandKind.CLARIFY)

        if command is None:
            return TurnResult(reply=reply_for_error(UnrecognizedCommand(text)), error=UnrecognizedCommand(text))
        return await self.dispatch(command, sender, view)

    async def dispatch(self, command: Command, sender: Sender, view: Optional[List[dict]] = None) -> TurnResult:
        handler = self._handlers[command.kind]
        result = TurnResult(reply="", kind=command.kind)
        try:
            payload = await handler(command, sender, view, result)
        except OhMyBotError as e:
            log.info("%s failed: %s", command.kind.value, e)
            result.reply = reply_for_error(e)
            result.error = e
            result.view = None
            result.follow_ups = []
            return result
        result.reply = render_reply(payload)
        return result

    # ---------- handlers ----------
    async def handle_rant(self, command, sender, view, result):
        return self.store.submit(command.body, sender.user_id, sender.address)

    async def handle_retro(self, command, sender, view, result):
        if not command.hashtags:
            raise NoHashtagFound()
        records = await retrieve(
            self.store,
            self.anonymizer,
            command.hashtags,
            window=self._window(command),
            bypass=is_truthy(command.args.get("bypass")),
        )
        result.view = [r.to_view() for r in records]
        return records

    async def handle_greeting(self, command, sender, view, result):
        return GREETING

    async def handle_clarify(self, command, sender, view, result):
        position = command.position
        if not view or position is None or not 1 <= position <= len(view):
            raise InvalidClarificationTarget()
        try:
            record = self.store.get(view[position - 1]["id"])
        except FeedbackNotFound as e:
            raise InvalidClarificationTarget() from e
        if record.submitter_address is None or not record.submitter_id:
            raise InvalidClarificationTarget()

        result.follow_ups.append(
            ClarificationRequest(
                feedback_id=record.id,
                submitter_id=record.submitter_id,
                submitter_address=record.submitter_address,
                original_text=record.text,
            )
        )
        return CLARIFY_ASKED

    def _window(self, command):
        raw = command.args.get("window")
        if raw:
            try:
                window = float(raw)
            except ValueError:
                window = None
            if window is not None and math.isfinite(window) and window >= 0:
                return window
            log.info("ignoring bad window %r", raw)
        return self.lookback
