"""Indexing job and result models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class IndexingStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ExtractedText(BaseModel):
    """Plain text pulled out of a manual PDF."""

    model_config = ConfigDict(frozen=True)

    text: str
    page_count: int = Field(default=0, ge=0)


class IndexingResult(BaseModel):
    """Counts from one chunk → embed → store run."""

    model_config = ConfigDict(frozen=True)

    manual_id: str
    chunks_created: int = Field(ge=0)
    chunks_stored: int = Field(ge=0)
    total_tokens: int = Field(ge=0)
    page_count: int | None = None
    elapsed_seconds: float = Field(ge=0.0)


class IndexingJob(BaseModel):
    """Observable state of one background indexing submission."""

    model_config = ConfigDict(frozen=True)

    job_id: str
    manual_id: str
    status: IndexingStatus = IndexingStatus.PENDING
    submitted_at: datetime
    finished_at: datetime | None = None
    chunks_created: int = 0
    chunks_stored: int = 0
    error: str | None = None
