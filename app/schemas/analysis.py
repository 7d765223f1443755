"""
Schemas for analysis submission, result and settings endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class AnalyzeRequest(BaseModel):
    # Left untyped so malformed values reach URL validation and map to 400.
    url: Any = None


class AnalysisAcceptedResponse(BaseModel):
    task_id: UUID
    status: str
    deduplicated: bool = False


class CheckItemResponse(BaseModel):
    id: str
    label: str
    weight: int
    score: int
    evidence: dict[str, Any] = Field(default_factory=dict)
    advice: str = ""
    priority: str


class CheckGroupResponse(BaseModel):
    name: str
    weight: int
    score: int
    items: list[CheckItemResponse] = Field(default_factory=list)


class TaskStatusResponse(BaseModel):
    task_id: UUID
    status: str
    requested_url: str
    final_url: str | None = None
    overall_score: int | None = None
    grade: str | None = None
    checks: list[CheckGroupResponse] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    cwv: dict[str, Any] | None = None
    error_message: str | None = None
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None


class WeightsPayload(BaseModel):
    technical: int
    content: int
    structured_data: int
    performance: int
    social: int


class HealthResponse(BaseModel):
    status: str
    database: str
