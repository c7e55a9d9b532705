"""Acquisition progress events and upstream lookup outcomes.

Upstream manual lookups return a tagged union rather than raw JSON so the
orchestrator can branch on ``kind`` without poking at loosely-typed
payloads:

    ManualLookupOutcome = ManualLookupHit | ManualLookupMiss
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class AcquisitionStage(str, Enum):
    """Waterfall stages, in the order the orchestrator walks them."""

    CHECKING_CACHE = "checking_cache"
    QUERYING_COMMERCIAL_API = "querying_commercial_api"
    TRYING_MANUFACTURER_PATTERNS = "trying_manufacturer_patterns"
    ASKING_AI_FOR_URL = "asking_ai_for_url"
    VERIFYING_URL = "verifying_url"
    DOWNLOADING = "downloading"
    FALLBACK_WEB_SEARCH_LINK = "fallback_web_search_link"
    DONE = "done"


class ProgressEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    stage: AcquisitionStage
    detail: str | None = None


class LookupMissReason(str, Enum):
    NOT_CONFIGURED = "not_configured"
    NOT_FOUND = "not_found"
    UPSTREAM_ERROR = "upstream_error"
    MALFORMED_RESPONSE = "malformed_response"


class ManualLookupHit(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["hit"] = "hit"
    manual_url: str
    manual_title: str | None = None


class ManualLookupMiss(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["miss"] = "miss"
    reason: LookupMissReason
    detail: str | None = None


ManualLookupOutcome = Annotated[
    Union[ManualLookupHit, ManualLookupMiss],
    Field(discriminator="kind"),
]


class DiscoveredManualUrl(BaseModel):
    """Structured answer expected from the LLM during URL discovery."""

    model_config = ConfigDict(frozen=True)

    url: str | None = None
    confidence: float | None = None
    notes: str | None = None
