"""
Shared fixtures for OhMyBot tests.
External services are replaced by fakes; the traffic log is disabled.
"""
import pytest

from ohmybot.clarify import ClarificationDialogs
from ohmybot.dispatcher import FeedbackDispatcher, Sender
from ohmybot.errors import ExternalTransformFailure
from ohmybot.store import InMemoryFeedbackStore
from ohmybot.translation import Anonymizer, Translator


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeTranslator(Translator):
    """Tags text with the locale pair so round trips are visible."""

    def __init__(self, fail_on=None):
        self.calls = []
        self.fail_on = fail_on

    async def translate(self, text, source, target):
        self.calls.append((text, source, target))
        if self.fail_on and self.fail_on in text:
            raise ExternalTransformFailure("translator exploded")
        return f"{text}|{source}>{target}"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryFeedbackStore(clock=clock)


@pytest.fixture
def translator():
    return FakeTranslator()


@pytest.fixture
def anonymizer(translator):
    return Anonymizer(translator, "en", "de")


@pytest.fixture
def dispatcher(store, anonymizer):
    return FeedbackDispatcher(store, anonymizer, dialogs=ClarificationDialogs(store))


@pytest.fixture
def alice():
    return Sender(user_id="alice", address={"conversation": "alice-dm"})


@pytest.fixture
def bob():
    return Sender(user_id="bob", address={"conversation": "bob-dm"})
