"""Parsing of raw chat text into OhMyBot commands.

A message is a body optionally followed by an argument tail::

    \\retro #worklife ;;bypass=yes,window=3600

The body decides the command through an ordered list of patterns; the tail
becomes a key/value mapping handed to the command handler.
"""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

HASHTAG_RE = re.compile(r"#[^\W\d_][\w-]*")
GREETING_RE = re.compile(r"^\s*(hi|hello|hey|yo)\s*[!.?]*\s*$", re.IGNORECASE)
CLARIFY_RE = re.compile(r"^\s*clarify\s+#?(\d+)\s*[!.?]*\s*$", re.IGNORECASE)
ESCAPE = "\\"
ARGS_SEPARATOR = ";;"


class CommandKind(str, Enum):
    RANT = "rant"
    RETRO = "retro"
    GREETING = "greeting"
    CLARIFY = "clarify"


@dataclass(frozen=True)
class Command:
    kind: CommandKind
    body: str
    hashtags: Tuple[str, ...] = ()
    args: Dict[str, str] = field(default_factory=dict)
    position: Optional[int] = None


def extract_hashtags(text: str) -> Tuple[str, ...]:
    """Lowercased hashtag tokens in order of first appearance."""
    seen = []
    for token in HASHTAG_RE.findall(text):
        tag = token.lower()
        if tag not in seen:
            seen.append(tag)
    return tuple(seen)


def strip_hashtags(text: str) -> str:
    return HASHTAG_RE.sub("", text)


def split_args(text: str) -> Tuple[str, str]:
    body, _, tail = text.partition(ARGS_SEPARATOR)
    return body, tail


def parse_args(tail: str) -> Dict[str, str]:
    args = {}
    for pair in tail.split(","):
        key, sep, value = pair.partition("=")
        key = key.strip().lower()
        if not key:
            continue
        # "key" without "=" keeps the key and loses the value
        args[key] = value.strip() if sep else ""
    return args


def _is_rant(body):
    return bool(HASHTAG_RE.search(body)) and ESCAPE not in body


def _is_retro(body):
    return ESCAPE in body


# Evaluated in order; the first matching predicate names the command.
COMMAND_PATTERNS: List[Tuple[CommandKind, Callable[[str], bool]]] = [
    (CommandKind.RANT, _is_rant),
    (CommandKind.RETRO, _is_retro),
    (CommandKind.GREETING, lambda body: bool(GREETING_RE.match(body))),
    (CommandKind.CLARIFY, lambda body: bool(CLARIFY_RE.match(body))),
]


def match_kind(body: str) -> Optional[CommandKind]:
    for kind, predicate in COMMAND_PATTERNS:
        if predicate(body):
            return kind
    return None


def build_command(kind: CommandKind, text: str) -> Command:
    """Extract hashtags, arguments and position for an already-known kind."""
    body, tail = split_args(text)
    position = None
    if kind is CommandKind.CLARIFY:
        m = CLARIFY_RE.match(body) or re.search(r"\d+", body)
        if m:
            position = int(m.group(1) if m.groups() else m.group(0))
    return Command(
        kind=kind,
        body=body,
        hashtags=extract_hashtags(body),
        args=parse_args(tail) if tail else {},
        position=position,
    )


def parse_command(text: str) -> Optional[Command]:
    """Return the command for ``text``, or None when nothing matches."""
    if not text:
        return None
    body, _ = split_args(text)
    kind = match_kind(body)
    if kind is None:
        return None
    return build_command(kind, text)


def is_truthy(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("yes", "y", "true", "1", "on")
