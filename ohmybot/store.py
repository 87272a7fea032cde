import abc
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, FrozenSet, Iterable, List, Optional

from .commands import extract_hashtags, strip_hashtags
from .errors import FeedbackNotFound, NoHashtagFound

log = logging.getLogger(__name__)


@dataclass
class FeedbackRecord:
    id: int
    text: str
    hashtags: FrozenSet[str]
    created_at: float
    submitter_id: Optional[str] = None
    submitter_address: Any = None
    responses: List[str] = field(default_factory=list)

    def snapshot(self) -> "FeedbackRecord":
        # the address is an opaque transport object and is shared, not copied
        return FeedbackRecord(
            id=self.id,
            text=self.text,
            hashtags=self.hashtags,
            created_at=self.created_at,
            submitter_id=self.submitter_id,
            submitter_address=self.submitter_address,
            responses=list(self.responses),
        )

    def to_view(self) -> dict:
        return {"id": self.id, "text": self.text}


class FeedbackStore(abc.ABC):
    """Where rants live. Handlers only ever see this interface."""

    @abc.abstractmethod
    def submit(self, text: str, submitter_id: Optional[str] = None, submitter_address: Any = None) -> bool:
        ...

    @abc.abstractmethod
    def query(self, hashtags: Iterable[str], window: Optional[float] = None) -> List[FeedbackRecord]:
        ...

    @abc.abstractmethod
    def append_response(self, feedback_id: int, text: str) -> None:
        ...

    @abc.abstractmethod
    def get(self, feedback_id: int) -> FeedbackRecord:
        ...


class InMemoryFeedbackStore(FeedbackStore):
    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._records: List[FeedbackRecord] = []
        self._ids = itertools.count(1)

    def __len__(self):
        return len(self._records)

    def submit(self, text, submitter_id=None, submitter_address=None):
        hashtags = extract_hashtags(text or "")
        if not hashtags:
            raise NoHashtagFound()
        record = FeedbackRecord(
            id=next(self._ids),
            text=strip_hashtags(text),
            hashtags=frozenset(hashtags),
            created_at=self._clock(),
            submitter_id=submitter_id,
            submitter_address=submitter_address,
        )
        self._records.append(record)
        log.info("stored feedback id=%s tags=%s", record.id, sorted(record.hashtags))
        return True

    def query(self, hashtags, window=None):
        wanted = {tag.lower() for tag in hashtags}
        if not wanted:
            return []
        now = self._clock()
        matches = [
            r for r in self._records
            if r.hashtags & wanted and (window is None or now - r.created_at <= window)
        ]
        matches.sort(key=lambda r: (r.created_at, r.id))
        return [r.snapshot() for r in matches]

    def append_response(self, feedback_id, text):
        self._find(feedback_id).responses.append(text)

    def get(self, feedback_id):
        return self._find(feedback_id).snapshot()

    def _find(self, feedback_id) -> FeedbackRecord:
        for record in self._records:
            if record.id == feedback_id:
                return record
        raise FeedbackNotFound(feedback_id)
