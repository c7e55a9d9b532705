"""Ask an LLM for a manufacturer's owner's-manual PDF URL.

This relies on the model having seen the URL during training, so the
answer is only a candidate: the orchestrator verifies it like any other,
and the indexer checks that the document mentions the vehicle before
trusting it for grounding.  Anything other than a single ``https`` URL
counts as "no suggestion".
"""

from __future__ import annotations

import json
import re

import structlog
from pydantic import ValidationError

from manual_rag.interfaces.llm_provider import ILLMProvider
from manual_rag.models.acquisition import DiscoveredManualUrl
from manual_rag.models.vehicle import VehicleDescriptor
from manual_rag.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)

_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)

_SYSTEM_PROMPT = """\
You locate official vehicle owner's manuals published by manufacturers.
Reply with a single JSON object and nothing else:
{"url": "<direct https link to the owner's manual PDF, or null>", "confidence": <0.0-1.0>}
Only give a URL you believe points directly at a PDF file on the manufacturer's \
own website. If you are not reasonably sure, reply {"url": null, "confidence": 0.0}."""


class ManualUrlDiscoveryService:
    """Turns an LLM's best guess into a candidate manual URL."""

    def __init__(self, llm: ILLMProvider | None) -> None:
        self._llm = llm

    def is_available(self) -> bool:
        return self._llm is not None and self._llm.is_available()

    async def discover(self, vehicle: VehicleDescriptor) -> str | None:
        """Return an https URL suggested by the LLM, or ``None``."""
        if not self.is_available():
            return None

        user_prompt = (
            f"Find the owner's manual PDF for the {vehicle.display_name()}."
            + (f" VIN: {vehicle.vin}." if vehicle.vin else "")
        )
        try:
            reply = await self._llm.complete(
                system_prompt=_SYSTEM_PROMPT,
                user_prompt=user_prompt,
                temperature=0.0,
                max_tokens=300,
            )
        except LLMError as exc:
            logger.warning("manual_url_discovery_failed", vehicle=vehicle.cache_key(), error=str(exc))
            return None

        suggestion = self._parse_reply(reply)
        url = (suggestion.url or "").strip() if suggestion else ""
        if not url.lower().startswith("https://") or any(ch.isspace() for ch in url):
            logger.info("manual_url_not_suggested", vehicle=vehicle.cache_key())
            return None

        logger.info(
            "manual_url_suggested",
            vehicle=vehicle.cache_key(),
            url=url,
            confidence=suggestion.confidence,
        )
        return url

    @staticmethod
    def _parse_reply(reply: str) -> DiscoveredManualUrl | None:
        """Extract the JSON object from *reply*, tolerating fences and preamble."""
        text = reply.strip()
        fence_match = _JSON_FENCE_RE.search(text)
        if fence_match:
            text = fence_match.group(1).strip()

        start, end = text.find("{"), text.rfind("}")
        if start != -1 and end > start:
            text = text[start : end + 1]

        try:
            return DiscoveredManualUrl.model_validate(json.loads(text))
        except (json.JSONDecodeError, ValidationError, TypeError):
            return None
