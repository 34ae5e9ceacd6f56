"""
Anthropic Messages API client for incident text normalization
Turns noisy CDOT traveler messages into a short summary plus a score penalty
"""
import json
import logging
import re
from typing import Optional

import anthropic
from pydantic import ValidationError

from corridor.config import Settings
from corridor.exceptions import NormalizationError
from corridor.models.schemas import MAX_SUMMARY_LENGTH, IncidentSeverity, TextNormalization

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = f"""You rewrite Colorado DOT traffic incident messages for drivers on the I-70 mountain corridor.

For each message return:
- summary: plain-English description, sentence case, no mile-marker codes, under {MAX_SUMMARY_LENGTH} characters
- penalty: how many points (0-10) the incident should take off a 10-point "vibe" score

Penalty guide:
- 5: full road closure or all lanes blocked
- 3-4: major crash
- 2: lane closure or crash with lanes open
- 1: traction/chain law, moderate advisories
- 0: informational only

Respond with JSON only: {{"summary": "<text>", "penalty": <number>}}"""

USER_PROMPT_TEMPLATE = """Incident type: {incident_type}
Severity: {severity}
Message: {message}"""

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def parse_normalization(text: str) -> TextNormalization:
    """
    Strictly validate a model reply

    Raises:
        NormalizationError: when no JSON object is present or it violates the schema
    """
    cleaned = _CODE_FENCE.sub("", (text or "").strip())
    match = _JSON_OBJECT.search(cleaned)
    if not match:
        raise NormalizationError(f"No JSON found in response: {text[:100]!r}")
    try:
        payload = json.loads(match.group(0))
        return TextNormalization.model_validate(payload)
    except (json.JSONDecodeError, ValidationError) as e:
        raise NormalizationError(f"Invalid normalization response: {e}") from e


class AnthropicTextNormalizer:
    """Network-backed text normalizer; any failure surfaces as an exception"""

    cacheable = True
    name = "anthropic"

    def __init__(self, client: anthropic.AsyncAnthropic, model: str, max_tokens: int = 150):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["AnthropicTextNormalizer"]:
        """None when no API key is configured"""
        if not settings.llm_enabled:
            return None
        client = anthropic.AsyncAnthropic(
            api_key=settings.anthropic_api_key,
            max_retries=settings.llm_max_retries,
            timeout=settings.llm_timeout_seconds,
        )
        return cls(client, settings.anthropic_model)

    async def normalize(self, raw_text: str, incident_type: str, severity: IncidentSeverity) -> TextNormalization:
        message = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=SYSTEM_PROMPT,
            messages=[
                {
                    "role": "user",
                    "content": USER_PROMPT_TEMPLATE.format(
                        incident_type=incident_type or "unknown",
                        severity=severity.value,
                        message=raw_text,
                    ),
                }
            ],
        )
        text = next((block.text for block in message.content if getattr(block, "type", None) == "text"), None)
        if text is None:
            raise NormalizationError("No text response from model")
        return parse_normalization(text)
