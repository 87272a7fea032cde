import asyncio
import logging
from typing import Optional

from azure.core.credentials import AzureKeyCredential
from azure.core.exceptions import AzureError
from azure.ai.language.conversations import ConversationAnalysisClient

from .commands import Command, CommandKind, build_command, parse_command

log = logging.getLogger(__name__)

# CLU intent name -> command
INTENT_KINDS = {
    "Rant": CommandKind.RANT,
    "Retro": CommandKind.RETRO,
    "Greeting": CommandKind.GREETING,
    "Clarify": CommandKind.CLARIFY,
}


class PatternRecognizer:
    async def recognize(self, text: str) -> Optional[Command]:
        return parse_command(text)


class CluRecognizer:
    """Intent recognition through Azure Conversational Language Understanding.

    Only the intent comes from the service. Hashtags, the argument tail and
    clarify positions are still read from the text locally.
    """

    def __init__(self, client, project: str, deployment: str, threshold: float = 0.50, language: str = "en"):
        self.client = client
        self.project = project
        self.deployment = deployment
        self.threshold = threshold
        self.language = language

    @classmethod
    def from_key(cls, endpoint: str, key: str, project: str, deployment: str, **kwargs):
        if not endpoint.startswith(("http://", "https://")):
            endpoint = "https://" + endpoint
        client = ConversationAnalysisClient(endpoint, AzureKeyCredential(key))
        return cls(client, project, deployment, **kwargs)

    def _task(self, text):
        return {
            "kind": "Conversation",
            "analysisInput": {
                "conversationItem": {
                    "id": "1",
                    "participantId": "user",
                    "modality": "text",
                    "language": self.language,
                    "text": text,
                }
            },
            "parameters": {
                "projectName": self.project,
                "deploymentName": self.deployment,
                "stringIndexType": "TextElement_V8",
            },
        }

    async def top_intent(self, text: str):
        result = await asyncio.to_thread(self.client.analyze_conversation, self._task(text))
        prediction = result["result"]["prediction"]
        top = prediction.get("topIntent")
        confidence = next(
            (i.get("confidenceScore", 0.0) for i in prediction.get("intents", []) if i.get("category") == top),
            0.0,
        )
        return top, float(confidence or 0.0)

    async def recognize(self, text: str) -> Optional[Command]:
        if not (text or "").strip():
            return None
        try:
            top, confidence = await self.top_intent(text)
        except AzureError:
            log.exception("CLU call failed")
            return None
        except (KeyError, TypeError, AttributeError):
            log.exception("unexpected CLU response")
            return None

        kind = INTENT_KINDS.get(top)
        log.info("CLU intent=%s confidence=%.2f", top, confidence)
        if kind is None or confidence < self.threshold:
            return None
        return build_command(kind, text)
