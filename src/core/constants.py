"""Core constants used across pto-import modules.

This module centralizes storage keys, limits, and closed vocabularies.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_DATA_ROOT = Path(".pto_import")
KV_DIR_NAME = "kv"
KV_FILE_SUFFIX = ".json"
DEFAULT_BACKEND = "file"
SUPPORTED_BACKENDS = ("file", "memory", "s3")
DEFAULT_MAX_ITEM_SIZE = 240_000
DEFAULT_MAX_CHUNK_SIZE = 200_000
DEFAULT_BATCH_SIZE = 5
DEFAULT_S3_PREFIX = "pto-import"
CHUNK_META_SUFFIX = "_meta"
CHUNK_KEY_INFIX = "_chunk_"
STAGING_KEY = "pto_import_staging"
PROGRESS_KEY = "pto_import_progress"
REQUESTS_KEY = "pto_requests"
SCHEDULES_KEY = "pto_daily_schedules"
HASH_ALGORITHM = "sha256"
REQUEST_ID_PREFIX = "pto-import"
SCHEDULE_ID_PREFIX = "schedule-import"
VALID_LEAVE_TYPES = ("vacation", "sick", "personal", "holiday", "other leave type")
VALID_STATUSES = ("pending", "approved", "declined", "cancelled")
DEFAULT_IMPORT_STATUS = "approved"
DEFAULT_SCHEDULE_TYPE = "FULL_DAY"
HALF_DAY_SCHEDULE_TYPES = ("HALF_DAY", "HALF_DAY_MORNING", "HALF_DAY_AFTERNOON")
FULL_DAY_HOURS = 8.0
HALF_DAY_HOURS = 4.0
DEFAULT_IMPORT_REASON = "Imported PTO"
DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
