"""Background validation task — fetch document, ask the model, aggregate, persist.

Every exception is caught once here, logged, and forces the record to
"failed" with the error message as its only error. Nothing is retried at
this level; a failed CV needs a new submission.
"""

import logging
import time

from pydantic import ValidationError

from config import settings
from documents import DocumentFetcher
from models import TaskResult, ValidationPayload, ValidationStatus
from records import InvalidTransitionError, RecordStore
from validation import VerdictSource, aggregate_verdicts

logger = logging.getLogger(__name__)


class ValidationTimeoutError(Exception):
    """Validation task ran past its maximum duration."""


def run_validation(
    payload: dict,
    records: RecordStore,
    fetcher: DocumentFetcher,
    verdicts: VerdictSource,
    max_duration_seconds: int | None = None,
) -> TaskResult:
    """Validate one submitted CV against its form data and persist the outcome."""
    start = time.monotonic()
    limit = max_duration_seconds if max_duration_seconds is not None else settings.TASK_MAX_DURATION_SECONDS
    cv_id = payload.get("cvId") if isinstance(payload, dict) else None
    version: int | None = None

    def check_deadline(stage: str) -> None:
        elapsed = time.monotonic() - start
        if elapsed > limit:
            raise ValidationTimeoutError(
                f"Validation exceeded maximum duration of {limit}s during {stage}"
            )

    try:
        validated = ValidationPayload.model_validate(payload)
        cv_id = validated.cv_id
        logger.info("Starting CV validation: cv=%s", cv_id)

        version = records.mark_validating(cv_id)

        document = fetcher.fetch(validated.file_url)
        check_deadline("document fetch")

        field_verdicts = verdicts.assess(document, validated.form_data)
        check_deadline("model call")

        outcome = aggregate_verdicts(field_verdicts)
        records.complete(cv_id, outcome, expected_version=version)

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            "CV validation completed: cv=%s status=%s errors=%d in %dms",
            cv_id, outcome.status.value, len(outcome.errors), elapsed_ms,
        )
        return TaskResult(
            success=True,
            cv_id=cv_id,
            status=outcome.status,
            results=outcome.results,
            errors=outcome.errors,
        )

    except Exception as e:
        message = _error_message(e)
        logger.error("CV validation failed: cv=%s error=%s", cv_id, message)

        # A record that already reached a terminal state keeps its outcome
        if isinstance(cv_id, str) and cv_id and not isinstance(e, InvalidTransitionError):
            try:
                records.fail(cv_id, message, expected_version=version)
            except Exception as update_error:
                logger.error("Failed to mark CV %s as failed: %s", cv_id, update_error)

        return TaskResult(
            success=False,
            cv_id=cv_id if isinstance(cv_id, str) else None,
            status=ValidationStatus.FAILED,
            errors=[message],
        )


def _error_message(error: Exception) -> str:
    if isinstance(error, ValidationError):
        return f"Invalid validation payload: {error.error_count()} validation error(s)"
    return str(error) or "Unknown validation error"
