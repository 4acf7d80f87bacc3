"""CV record persistence and the validation status state machine.

pending -> validating -> validated | failed

Terminal writes carry the version handed out when the record entered
"validating". If another validation started in between, the older writer
is rejected with StaleRecordError instead of overwriting the newer run.
"""

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Protocol

from models import TERMINAL_STATUSES, AggregateOutcome, CVRecord, FormData, ValidationStatus

logger = logging.getLogger(__name__)


class RecordNotFoundError(Exception):
    """No CV record exists with the given id."""


class InvalidTransitionError(Exception):
    """Requested status change is not allowed from the record's current status."""


class StaleRecordError(Exception):
    """Terminal write lost the race against a newer validation of the same record."""


class RecordStore(Protocol):
    def create(self, form: FormData, file_name: str, file_url: str) -> CVRecord: ...

    def get(self, record_id: str) -> CVRecord: ...

    def list_all(self) -> list[CVRecord]: ...

    def mark_validating(self, record_id: str) -> int: ...

    def complete(self, record_id: str, outcome: AggregateOutcome, expected_version: int) -> CVRecord: ...

    def fail(self, record_id: str, message: str, expected_version: int | None = None) -> CVRecord: ...


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryRecordStore:
    """Thread-safe record store; background tasks run on the server's thread pool."""

    def __init__(self) -> None:
        self._records: dict[str, CVRecord] = {}
        self._lock = threading.Lock()

    def create(self, form: FormData, file_name: str, file_url: str) -> CVRecord:
        now = _now()
        record = CVRecord(
            id=uuid.uuid4().hex,
            full_name=form.full_name,
            email=form.email,
            phone=form.phone,
            skills=form.skills,
            experience=form.experience,
            file_name=file_name,
            file_url=file_url,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._records[record.id] = record
        return record.model_copy(deep=True)

    def get(self, record_id: str) -> CVRecord:
        with self._lock:
            return self._get_locked(record_id).model_copy(deep=True)

    def list_all(self) -> list[CVRecord]:
        """All records, newest first."""
        with self._lock:
            return [r.model_copy(deep=True) for r in reversed(self._records.values())]

    def mark_validating(self, record_id: str) -> int:
        """Move a pending record to validating and return the version for the terminal write."""
        with self._lock:
            record = self._get_locked(record_id)
            if record.validation_status in TERMINAL_STATUSES:
                raise InvalidTransitionError(
                    f"CV {record_id} is already {record.validation_status.value}; submit a new CV to re-validate"
                )
            record.version += 1
            record.validation_status = ValidationStatus.VALIDATING
            record.updated_at = _now()
            return record.version

    def complete(self, record_id: str, outcome: AggregateOutcome, expected_version: int) -> CVRecord:
        """Store the aggregation outcome as the record's terminal state."""
        with self._lock:
            record = self._get_locked(record_id)
            self._check_version(record, expected_version)
            if record.validation_status != ValidationStatus.VALIDATING:
                raise InvalidTransitionError(
                    f"CV {record_id} is {record.validation_status.value}, expected validating"
                )
            now = _now()
            record.validation_status = outcome.status
            record.validation_results = outcome.results.model_copy(deep=True)
            record.validation_errors = list(outcome.errors)
            record.validated_at = now
            record.updated_at = now
            return record.model_copy(deep=True)

    def fail(self, record_id: str, message: str, expected_version: int | None = None) -> CVRecord:
        """Force the record to failed with a single error message.

        expected_version is None when the task failed before entering validating.
        """
        with self._lock:
            record = self._get_locked(record_id)
            if expected_version is not None:
                self._check_version(record, expected_version)
            elif record.validation_status in TERMINAL_STATUSES:
                raise InvalidTransitionError(f"CV {record_id} is already {record.validation_status.value}")
            now = _now()
            record.validation_status = ValidationStatus.FAILED
            record.validation_errors = [message]
            record.validated_at = now
            record.updated_at = now
            return record.model_copy(deep=True)

    def _get_locked(self, record_id: str) -> CVRecord:
        record = self._records.get(record_id)
        if record is None:
            raise RecordNotFoundError(f"CV not found: {record_id}")
        return record

    @staticmethod
    def _check_version(record: CVRecord, expected_version: int) -> None:
        if record.version != expected_version:
            logger.warning(
                "Rejecting stale write for CV %s (version %d, current %d)",
                record.id, expected_version, record.version,
            )
            raise StaleRecordError(
                f"CV {record.id} was re-validated concurrently (version {expected_version} != {record.version})"
            )
