import abc
import asyncio
import logging
from typing import Iterable, List, Optional

from azure.core.credentials import AzureKeyCredential
from azure.core.exceptions import AzureError
from azure.ai.translation.text import TextTranslationClient

from .errors import ExternalTransformFailure
from .store import FeedbackRecord, FeedbackStore

log = logging.getLogger(__name__)


class Translator(abc.ABC):
    @abc.abstractmethod
    async def translate(self, text: str, source: str, target: str) -> str:
        ...


class AzureTranslator(Translator):
    """Microsoft Translator through the Text Translation SDK.

    The SDK client is synchronous, so calls run in a worker thread to keep the
    bot's event loop free while a round trip is in flight.
    """

    def __init__(self, key: str, region: str = "", endpoint: str = "", client=None):
        self._client = client
        if self._client is None and key:
            kwargs = {"credential": AzureKeyCredential(key)}
            if region:
                kwargs["region"] = region
            if endpoint:
                kwargs["endpoint"] = endpoint
            self._client = TextTranslationClient(**kwargs)

    @property
    def configured(self) -> bool:
        return self._client is not None

    async def translate(self, text, source, target):
        if not self._client:
            raise ExternalTransformFailure("translator is not configured")
        if not text.strip():
            return text
        try:
            response = await asyncio.to_thread(
                self._client.translate,
                body=[text],
                to_language=[target],
                from_language=source,
            )
        except AzureError as e:
            log.warning("translation %s->%s failed: %s", source, target, e)
            raise ExternalTransformFailure(str(e)) from e

        item = response[0] if response else None
        if not item or not item.translations:
            raise ExternalTransformFailure(f"empty translation for {source}->{target}")
        return item.translations[0].text


class Anonymizer:
    """Obscures authorship by translating text out to a pivot locale and back."""

    def __init__(self, translator: Translator, source_locale: str = "en", pivot_locale: str = "de"):
        self.translator = translator
        self.source_locale = source_locale
        self.pivot_locale = pivot_locale

    async def obscure(self, text: str) -> str:
        there = await self.translator.translate(text, self.source_locale, self.pivot_locale)
        return await self.translator.translate(there, self.pivot_locale, self.source_locale)

    async def _anonymize_one(self, record: FeedbackRecord) -> FeedbackRecord:
        rewritten = record.snapshot()
        rewritten.text = await self.obscure(record.text)
        return rewritten

    async def anonymize(self, records: Iterable[FeedbackRecord]) -> List[FeedbackRecord]:
        # all or nothing: one failed round trip rejects the whole batch
        return list(await asyncio.gather(*(self._anonymize_one(r) for r in records)))


async def retrieve(
    store: FeedbackStore,
    anonymizer: Anonymizer,
    hashtags: Iterable[str],
    window: Optional[float] = None,
    bypass: bool = False,
) -> List[FeedbackRecord]:
    records = store.query(hashtags, window)
    if bypass or not records:
        return records
    return await anonymizer.anonymize(records)
