"""Pydantic models for form data, field verdicts and CV records.

Attribute names are snake_case; the wire format (model replies, persisted
results, API responses) uses the camelCase aliases the polling client reads.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FieldStatus(str, Enum):
    MATCH = "match"
    PARTIAL_MATCH = "partial_match"
    NO_MATCH = "no_match"
    NOT_FOUND = "not_found"


class ValidationStatus(str, Enum):
    PENDING = "pending"
    VALIDATING = "validating"
    VALIDATED = "validated"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({ValidationStatus.VALIDATED, ValidationStatus.FAILED})


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class FormData(_WireModel):
    full_name: str = Field(alias="fullName")
    email: str
    phone: str | None = None
    skills: str | None = None
    experience: str | None = None


class FieldVerdict(_WireModel):
    field: str
    status: FieldStatus
    confidence: float = 0.0
    reason: str = ""
    extracted_value: str | None = Field(default=None, alias="extractedValue")

    @field_validator("confidence", mode="before")
    @classmethod
    def _null_confidence(cls, value):
        return 0.0 if value is None else value

    @field_validator("reason", mode="before")
    @classmethod
    def _null_reason(cls, value):
        return "" if value is None else value

    @field_validator("extracted_value", mode="before")
    @classmethod
    def _scalar_extracted_value(cls, value):
        # Models return phone numbers and years as bare numbers
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class VerdictList(_WireModel):
    """Shape of the model's reply after fence stripping."""

    fields: list[FieldVerdict]


class ValidationSummary(_WireModel):
    total_checked: int = Field(alias="totalChecked")
    match_count: int = Field(alias="matchCount")
    partial_match_count: int = Field(alias="partialMatchCount")
    no_match_count: int = Field(alias="noMatchCount")
    overall_confidence: float = Field(alias="overallConfidence")


class ValidationResults(_WireModel):
    fields: list[FieldVerdict]
    summary: ValidationSummary


class AggregateOutcome(_WireModel):
    status: ValidationStatus
    results: ValidationResults
    errors: list[str] = []


class ValidationPayload(_WireModel):
    """Background task input, checked before any side effect."""

    cv_id: str = Field(alias="cvId", min_length=1)
    file_url: str = Field(alias="fileUrl", min_length=1)
    form_data: FormData = Field(alias="formData")


class CVRecord(_WireModel):
    id: str
    full_name: str = Field(alias="fullName")
    email: str
    phone: str | None = None
    skills: str | None = None
    experience: str | None = None
    file_name: str = Field(alias="fileName")
    file_url: str = Field(alias="fileUrl")
    validation_status: ValidationStatus = Field(default=ValidationStatus.PENDING, alias="validationStatus")
    validation_results: ValidationResults | None = Field(default=None, alias="validationResults")
    validation_errors: list[str] = Field(default=[], alias="validationErrors")
    validated_at: datetime | None = Field(default=None, alias="validatedAt")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")
    version: int = Field(default=0, exclude=True)


class ValidationStatusResponse(_WireModel):
    id: str
    validation_status: ValidationStatus = Field(alias="validationStatus")
    validation_results: ValidationResults | None = Field(default=None, alias="validationResults")
    validation_errors: list[str] = Field(default=[], alias="validationErrors")
    validated_at: datetime | None = Field(default=None, alias="validatedAt")


class UploadResponse(BaseModel):
    success: bool
    id: str
    message: str


class TaskResult(_WireModel):
    success: bool
    cv_id: str | None = Field(default=None, alias="cvId")
    status: ValidationStatus
    results: ValidationResults | None = None
    errors: list[str] = []
