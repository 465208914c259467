"""Validation, enrichment, and staging of tabular PTO import rows.

This module checks each submitted row independently, optionally resolves
requester and manager emails through the identity directory, and persists
the accepted rows under the staging key so a later, independent batch
engine invocation can consume them.
"""

from __future__ import annotations

import re
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Mapping, Sequence

from core.constants import (
    DATE_PATTERN,
    DEFAULT_IMPORT_STATUS,
    DEFAULT_SCHEDULE_TYPE,
    EMAIL_PATTERN,
    FULL_DAY_HOURS,
    HALF_DAY_HOURS,
    HALF_DAY_SCHEDULE_TYPES,
    STAGING_KEY,
    VALID_LEAVE_TYPES,
    VALID_STATUSES,
)
from core.errors import DirectoryError, ImportInputError
from core.logging_config import get_logger
from core.types import (
    DirectoryIdentity,
    RowError,
    RowErrorKind,
    RowWarning,
    StagingRecord,
    StoreResult,
    ValidationOptions,
    ValidationReport,
)
from ingest.identity_directory import IdentityDirectory
from ingest.record_payload import staged_rows_from_payload, staging_record_to_payload
from store.chunk_store import ChunkStore

_LOGGER = get_logger(__name__)
_DATE_RE = re.compile(DATE_PATTERN)
_EMAIL_RE = re.compile(EMAIL_PATTERN)
_REQUIRED_FIELDS = ("requester_email", "manager_email", "leave_type", "date")
_ENRICHED_FIELDS = ("requester_id", "manager_id", "created_at")


class ImportStager:
    """Validate, enrich, and stage import rows."""

    def __init__(
        self,
        chunk_store: ChunkStore,
        directory: IdentityDirectory | None = None,
        staging_key: str = STAGING_KEY,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._chunk_store = chunk_store
        self._directory = directory
        self._staging_key = staging_key
        self._clock = clock or _utc_now

    def validate(
        self,
        rows: Sequence[Mapping[str, str]],
        options: ValidationOptions | None = None,
    ) -> ValidationReport:
        """Validate rows and build a per-row report.

        Rows are checked independently. Duplicates by (requester, date,
        leave type) are reported as warnings and kept.

        Args:
            rows: Submitted rows mapping column name to string value.
            options: Validation options.

        Returns:
            Report with accepted rows and one error entry per rejected row.

        Raises:
            DirectoryError: If identity resolution is requested without a directory.
        """
        validation_options = options or ValidationOptions()
        if validation_options.resolve_identities and self._directory is None:
            raise DirectoryError(
                "Identity resolution requested but no identity directory is configured. "
                "Set PTO_IMPORT_DIRECTORY_FILE or validate without resolution."
            )
        if not rows:
            return ValidationReport(
                total_records=0,
                valid_records=(),
                invalid_records=0,
                errors=(),
                messages=("No import rows provided",),
            )
        validator = _RowValidator(self._directory, validation_options, self._clock())
        valid_records: list[StagingRecord] = []
        errors: list[RowError] = []
        warnings: list[RowWarning] = []
        first_rows: dict[str, int] = {}
        for row_number, row in enumerate(rows, 1):
            record, error = validator.check(row_number, row)
            duplicate_key = _duplicate_key(record.fields)
            if duplicate_key is not None:
                first_row = first_rows.setdefault(duplicate_key, row_number)
                if first_row != row_number:
                    warnings.append(
                        RowWarning(row=row_number, duplicate_of=first_row, key=duplicate_key)
                    )
                    record = replace(record, duplicate_of=first_row)
            if error is not None:
                errors.append(error)
            else:
                valid_records.append(record)
        _LOGGER.info(
            "import_rows_validated",
            total_records=len(rows),
            valid_records=len(valid_records),
            invalid_records=len(errors),
            duplicate_rows=len(warnings),
            resolve_identities=validation_options.resolve_identities,
        )
        return ValidationReport(
            total_records=len(rows),
            valid_records=tuple(valid_records),
            invalid_records=len(errors),
            errors=tuple(errors),
            warnings=tuple(warnings),
        )

    def stage(self, records: Sequence[StagingRecord]) -> StoreResult:
        """Persist accepted rows under the staging key.

        Args:
            records: Enriched rows from a validation report with identity
                resolution; invalid rows are skipped.

        Returns:
            ChunkStore write result.

        Raises:
            ImportInputError: If an accepted row was never enriched.
        """
        valid_records = [record for record in records if record.is_valid]
        for record in valid_records:
            missing = [name for name in _ENRICHED_FIELDS if not record.fields.get(name)]
            if missing:
                raise ImportInputError(
                    f"Row {record.row_number} is not enriched (missing {', '.join(missing)}). "
                    "Validate with identity resolution before staging."
                )
        staged_payload = [staging_record_to_payload(record) for record in valid_records]
        result = self._chunk_store.store(self._staging_key, staged_payload)
        _LOGGER.info(
            "import_rows_staged",
            staging_key=self._staging_key,
            staged_records=len(staged_payload),
            chunks=result.chunks,
        )
        return result

    def load_staged(self) -> list[StagingRecord] | None:
        """Return the staged rows, or None when nothing is staged."""
        payload = self._chunk_store.load(self._staging_key)
        if payload is None:
            return None
        return staged_rows_from_payload(payload)

    def clear_staging(self) -> int:
        """Remove the staged rows and return the number of removed keys."""
        removed_count = self._chunk_store.remove(self._staging_key)
        _LOGGER.info(
            "import_staging_cleared", staging_key=self._staging_key, removed_keys=removed_count
        )
        return removed_count


class _RowValidator:
    """Per-call validation state, including the identity lookup cache."""

    def __init__(
        self,
        directory: IdentityDirectory | None,
        options: ValidationOptions,
        validated_at: datetime,
    ) -> None:
        self._directory = directory
        self._options = options
        self._validated_at = validated_at.isoformat()
        self._identity_cache: dict[str, DirectoryIdentity | None] = {}

    def check(
        self,
        row_number: int,
        row: Mapping[str, str],
    ) -> tuple[StagingRecord, RowError | None]:
        fields = _normalize_fields(row)
        reasons = _field_reasons(fields)
        if reasons:
            return _rejected(row_number, fields, row, "validation", reasons)
        if not self._options.resolve_identities:
            return StagingRecord(row_number=row_number, fields=fields), None
        identity_reasons = self._resolve_identities(fields)
        if identity_reasons:
            return _rejected(row_number, fields, row, "unresolved_identity", identity_reasons)
        _apply_defaults(fields, self._validated_at)
        return StagingRecord(row_number=row_number, fields=fields), None

    def _resolve_identities(self, fields: dict[str, object]) -> list[str]:
        reasons: list[str] = []
        for role in ("requester", "manager"):
            email = str(fields[f"{role}_email"])
            try:
                identity = self._lookup(email)
            except DirectoryError as error:
                reasons.append(f"Directory lookup failed for {role} {email}: {error}")
                continue
            if identity is None:
                reasons.append(f"{role.capitalize()} not found in directory with email: {email}")
                continue
            fields[f"{role}_id"] = identity.identity
            fields[f"{role}_name"] = identity.display_name
        return reasons

    def _lookup(self, email: str) -> DirectoryIdentity | None:
        cache_key = email.lower()
        if cache_key not in self._identity_cache:
            if self._directory is None:
                raise DirectoryError("No identity directory is configured.")
            self._identity_cache[cache_key] = self._directory.lookup_by_email(email)
        return self._identity_cache[cache_key]


def _normalize_fields(row: Mapping[str, str]) -> dict[str, object]:
    """Strip string values and normalize enum casing."""
    fields: dict[str, object] = {
        str(name).strip(): value.strip() if isinstance(value, str) else value
        for name, value in row.items()
    }
    for enum_field in ("leave_type", "status"):
        value = fields.get(enum_field)
        if isinstance(value, str) and value:
            fields[enum_field] = value.lower()
    schedule_type = fields.get("schedule_type")
    if isinstance(schedule_type, str) and schedule_type:
        fields["schedule_type"] = schedule_type.upper()
    return fields


def _field_reasons(fields: Mapping[str, object]) -> list[str]:
    """Collect field-level validation reasons for one row."""
    reasons = [f"Missing {name}" for name in _REQUIRED_FIELDS if not fields.get(name)]
    leave_type = fields.get("leave_type")
    if leave_type and leave_type not in VALID_LEAVE_TYPES:
        reasons.append(
            f'Invalid leave_type: "{leave_type}". Must be one of: {", ".join(VALID_LEAVE_TYPES)}'
        )
    status = fields.get("status")
    if status and status not in VALID_STATUSES:
        reasons.append(f"Invalid status. Must be one of: {', '.join(VALID_STATUSES)}")
    date_value = fields.get("date")
    if date_value and not _is_calendar_date(str(date_value)):
        reasons.append("Invalid date format. Expected YYYY-MM-DD")
    for email_field in ("requester_email", "manager_email"):
        email = fields.get(email_field)
        if email and not _EMAIL_RE.match(str(email)):
            reasons.append(f"Invalid {email_field} format")
    hours = fields.get("hours")
    if hours not in (None, "") and _parse_hours(hours) is None:
        reasons.append("Invalid hours. Expected a number between 0 and 24")
    return reasons


def _is_calendar_date(value: str) -> bool:
    if not _DATE_RE.match(value):
        return False
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return False
    return True


def _parse_hours(value: object) -> float | None:
    try:
        hours = float(str(value))
    except ValueError:
        return None
    if hours <= 0 or hours > 24:
        return None
    return hours


def _apply_defaults(fields: dict[str, object], validated_at: str) -> None:
    """Fill enrichment defaults on a resolved row."""
    schedule_type = str(fields.get("schedule_type") or DEFAULT_SCHEDULE_TYPE)
    fields["schedule_type"] = schedule_type
    hours = _parse_hours(fields["hours"]) if fields.get("hours") else None
    if hours is None:
        hours = HALF_DAY_HOURS if schedule_type in HALF_DAY_SCHEDULE_TYPES else FULL_DAY_HOURS
    fields["hours"] = hours
    fields["status"] = fields.get("status") or DEFAULT_IMPORT_STATUS
    fields["created_at"] = fields.get("created_at") or validated_at
    fields["import_date"] = validated_at
    fields["imported"] = True


def _duplicate_key(fields: Mapping[str, object]) -> str | None:
    requester = fields.get("requester_email")
    date_value = fields.get("date")
    leave_type = fields.get("leave_type")
    if not requester or not date_value or not leave_type:
        return None
    return f"{str(requester).lower()}|{date_value}|{leave_type}"


def _rejected(
    row_number: int,
    fields: dict[str, object],
    row: Mapping[str, str],
    kind: RowErrorKind,
    reasons: list[str],
) -> tuple[StagingRecord, RowError]:
    record = StagingRecord(
        row_number=row_number,
        fields=fields,
        is_valid=False,
        reasons=tuple(reasons),
    )
    error = RowError(
        row=row_number,
        kind=kind,
        reasons=tuple(reasons),
        data=dict(row),
    )
    return record, error


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)
