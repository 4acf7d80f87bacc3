"""Model reply parsing and verdict aggregation.

The model is reached through the VerdictSource capability so that parsing
and aggregation run without network access in tests.
"""

import json
import logging
import math
import re
from typing import Protocol

from pydantic import ValidationError

from documents import Document
from model_client import ModelClient
from models import (
    AggregateOutcome,
    FieldStatus,
    FieldVerdict,
    FormData,
    ValidationResults,
    ValidationStatus,
    ValidationSummary,
    VerdictList,
)
from prompts import build_validation_prompt

logger = logging.getLogger(__name__)

# Share of checked fields that must be match or partial_match
MATCH_THRESHOLD = 0.7

INSUFFICIENT_MATCHES_MESSAGE = "Insufficient matches found between form data and PDF content"

_OPENING_FENCE = re.compile(r"^```[\w-]*\s*")
_CLOSING_FENCE = re.compile(r"\s*```$")


class MalformedReplyError(Exception):
    """Model reply is not valid JSON of the expected verdict shape."""


class VerdictSource(Protocol):
    def assess(self, document: Document, form: FormData) -> list[FieldVerdict]: ...


class ModelVerdictSource:
    """VerdictSource backed by the chat-completion vision model."""

    def __init__(self, client: ModelClient):
        self._client = client

    def assess(self, document: Document, form: FormData) -> list[FieldVerdict]:
        prompt = build_validation_prompt(form)
        raw = self._client.complete(prompt, document)
        logger.info("Received model reply (%d chars)", len(raw))
        return parse_verdicts(raw)


def strip_code_fences(raw: str) -> str:
    """Remove a surrounding ``` or ```json fence from a model reply."""
    cleaned = raw.strip()
    if cleaned.startswith("```"):
        cleaned = _OPENING_FENCE.sub("", cleaned, count=1)
        cleaned = _CLOSING_FENCE.sub("", cleaned, count=1)
    return cleaned


def parse_verdicts(raw: str) -> list[FieldVerdict]:
    """Parse a model reply into field verdicts.

    Raises MalformedReplyError if the reply is not JSON or not
    {"fields": [...]} with known statuses.
    """
    cleaned = strip_code_fences(raw)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.warning("Could not parse JSON from model reply: %s", cleaned[:200])
        raise MalformedReplyError(f"Model reply is not valid JSON: {e}") from e

    try:
        return VerdictList.model_validate(data).fields
    except ValidationError as e:
        raise MalformedReplyError(f"Model reply has unexpected shape: {e.error_count()} validation error(s)") from e


def aggregate_verdicts(verdicts: list[FieldVerdict]) -> AggregateOutcome:
    """Turn per-field verdicts into an overall outcome, summary and error list."""
    errors: list[str] = []
    match_count = 0
    partial_match_count = 0
    no_match_count = 0
    total_checked = 0

    for verdict in verdicts:
        if verdict.status == FieldStatus.MATCH:
            match_count += 1
        elif verdict.status == FieldStatus.PARTIAL_MATCH:
            partial_match_count += 1
        elif verdict.status == FieldStatus.NO_MATCH:
            no_match_count += 1
            errors.append(f"{verdict.field}: {verdict.reason}")

        if verdict.status != FieldStatus.NOT_FOUND:
            total_checked += 1

    if no_match_count > 0:
        status = ValidationStatus.FAILED
    elif total_checked > 0 and (
        match_count == total_checked
        or match_count + partial_match_count >= math.ceil(total_checked * MATCH_THRESHOLD)
    ):
        status = ValidationStatus.VALIDATED
    else:
        status = ValidationStatus.FAILED

    if status == ValidationStatus.FAILED and not errors:
        errors.append(INSUFFICIENT_MATCHES_MESSAGE)

    overall_confidence = sum(v.confidence for v in verdicts) / len(verdicts) if verdicts else 0.0

    return AggregateOutcome(
        status=status,
        results=ValidationResults(
            fields=verdicts,
            summary=ValidationSummary(
                total_checked=total_checked,
                match_count=match_count,
                partial_match_count=partial_match_count,
                no_match_count=no_match_count,
                overall_confidence=overall_confidence,
            ),
        ),
        errors=errors,
    )
