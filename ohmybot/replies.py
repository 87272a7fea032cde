from typing import Iterable, Union

from .errors import (
    ExternalTransformFailure,
    InvalidClarificationTarget,
    NoHashtagFound,
    OhMyBotError,
    UnrecognizedCommand,
)
from .store import FeedbackRecord

THANKS = "Thanks bud!"
NOTHING_TO_REPORT = "Nothing to report!"
REPORT_HEADER = "Here's what some people said..."
DONT_UNDERSTAND = "I don't know what you meant :("
NOT_A_REAL_MESSAGE = "That's not a real message!"
APOLOGY = "Sorry, something went wrong"
CLARIFY_ASKED = "I've asked them to elaborate. Their answer will show up next time you look."
CLARIFY_THANKS = "Thanks for clarifying!"
CLARIFY_PROMPT = 'Someone would like to hear more about what you said: "{text}"\nWhat did you mean?'
GREETING = (
    "Hi! Tell me something with a #hashtag and I'll keep it anonymous. "
    "Send \\retro #hashtag to hear what people said, and `clarify N` to ask about item N."
)


def render_records(records: Iterable[FeedbackRecord]) -> str:
    lines = []
    for n, record in enumerate(records, start=1):
        lines.append(f"{n}. {record.text}")
        lines.extend(f"    > {response}" for response in record.responses)
    if not lines:
        return NOTHING_TO_REPORT
    return REPORT_HEADER + "\n" + "\n".join(lines)


def render_reply(result: Union[bool, str, list, None]) -> str:
    if result is True:
        return THANKS
    if isinstance(result, list):
        return render_records(result)
    if isinstance(result, str):
        return result
    return ":O"


def reply_for_error(error: OhMyBotError) -> str:
    if isinstance(error, NoHashtagFound):
        return str(error)
    if isinstance(error, InvalidClarificationTarget):
        return NOT_A_REAL_MESSAGE
    if isinstance(error, ExternalTransformFailure):
        return f"{APOLOGY}: {error}"
    if isinstance(error, UnrecognizedCommand):
        return DONT_UNDERSTAND
    return f"{APOLOGY}."
