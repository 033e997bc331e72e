"""Pydantic models for API request/response serialization.

These models mirror the tcn dataclasses and provide proper JSON
serialization for the FastAPI endpoints.
"""

from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, BaseModel, Field

from tcn.banshares.models import (
    EVIDENCE_MAX_LENGTH,
    EXPLANATION_MAX_LENGTH,
    MAX_LOG_CHANNELS,
    REASON_MAX_LENGTH,
    REPORT_REASON_MAX_LENGTH,
)

SNOWFLAKE_PATTERN = r"^[1-9][0-9]{16,19}$"


# ---------------------------------------------------------------------------
# Banshare models
# ---------------------------------------------------------------------------


class CreateBanshareRequest(BaseModel):
    """Body for submitting a banshare."""

    ids: str = Field(..., min_length=1, description="Whitespace-separated user IDs.")
    reason: str = Field(..., min_length=1, max_length=REASON_MAX_LENGTH)
    evidence: str = Field(..., min_length=1, max_length=EVIDENCE_MAX_LENGTH)
    server: str = Field(..., pattern=SNOWFLAKE_PATTERN, description="The originating guild.")
    severity: str = Field(..., description="P0, P1, P2 or DM.")
    urgent: bool = False
    skip_validation: bool = Field(False, validation_alias=AliasChoices("skipValidation", "skip_validation"))
    skip_checks: bool = Field(False, validation_alias=AliasChoices("skipChecks", "skip_checks"))


class CreateBanshareResponse(BaseModel):
    message: str


class BanshareResponse(BaseModel):
    """Mirrors tcn.banshares.models.Banshare without bookkeeping fields."""

    message: str
    status: str
    urgent: bool
    severity: str
    ids: str
    id_list: list[str] = Field(default_factory=list, serialization_alias="idList")
    reason: str
    evidence: str
    server: str
    author: str
    created: int
    reminded: int
    publisher: Optional[str] = None
    rejecter: Optional[str] = None
    rescinder: Optional[str] = None
    explanation: Optional[str] = None


class RescindRequest(BaseModel):
    explanation: str = Field(..., min_length=1, max_length=EXPLANATION_MAX_LENGTH)


class ReportRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=REPORT_REASON_MAX_LENGTH)


class CrosspostModel(BaseModel):
    """Mirrors tcn.banshares.models.Crosspost."""

    guild: str = Field(..., pattern=SNOWFLAKE_PATTERN)
    channel: str = Field(..., pattern=SNOWFLAKE_PATTERN)
    message: str = Field(..., pattern=SNOWFLAKE_PATTERN)


class CrosspostLocationResponse(BaseModel):
    channel: str
    message: str


class RegisterCrosspostsRequest(BaseModel):
    crossposts: list[CrosspostModel] = Field(default_factory=list)


class RegisterCrosspostsResponse(BaseModel):
    added: list[CrosspostModel] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class BanshareSettingsResponse(BaseModel):
    """Mirrors tcn.banshares.models.BanshareSettings."""

    guild: str
    channel: Optional[str] = None
    logs: list[str] = Field(default_factory=list)
    blockdms: bool = False
    nobutton: bool = False
    daedalus: bool = False
    autoban: int = 0


class UpdateSettingsRequest(BaseModel):
    """Partial settings update; only the fields that are sent are changed."""

    channel: Optional[str] = Field(None, pattern=SNOWFLAKE_PATTERN)
    logs: Optional[list[str]] = Field(None, max_length=MAX_LOG_CHANNELS)
    blockdms: Optional[bool] = None
    nobutton: Optional[bool] = None
    daedalus: Optional[bool] = None
    autoban: Optional[int] = Field(None, ge=0, le=255)


class AutobanResponse(BaseModel):
    """Decoded autoban field: ``{membership: {severity: enabled}}``."""

    value: int
    matrix: dict[str, dict[str, bool]] = Field(default_factory=dict)
