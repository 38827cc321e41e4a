"""
Application Constants
=====================

Centralized constants to replace magic numbers throughout the codebase.
Organized by domain for easy discovery and maintenance.

Usage:
    from app.constants import Recurrence, Retry, Batch
"""

# =============================================================================
# Recurrence Expansion
# =============================================================================

class Recurrence:
    """Safety limits for recurrence expansion."""
    MAX_ITERATIONS = 1000  # loop iterations, always enforced
    MAX_OCCURRENCES = 365  # accepted dates when the rule never ends
    TIME_PATTERN = r"^(\d{2}):(\d{2})$"


# =============================================================================
# Entity API
# =============================================================================

class Retry:
    """Rate-limit retry policy defaults."""
    MAX_RETRIES = 3
    BASE_DELAY_MS = 1000
    BACKOFF_FACTOR = 2.0
    RATE_LIMIT_STATUS = 429


class Timeouts:
    """Timeout values for entity API calls."""
    HTTP_REQUEST_TIMEOUT = 30  # seconds


class Batch:
    """Bounded batch execution defaults."""
    MAX_WORKERS = 4
    CHUNK_SIZE = 10  # items between pauses
    CHUNK_PAUSE_MS = 0  # pause after each chunk; retry policy handles throttling


# =============================================================================
# Entity names on the hosted API
# =============================================================================

class Entities:
    DEVICE = "VRDevice"
    APPLICATION = "VRApp"
    DEVICE_APP = "DeviceApp"
    PROGRAM = "Syllabus"
    SCHEDULE_ENTRY = "ScheduleEntry"


# =============================================================================
# Device status labels
# =============================================================================

# current_status values that take a headset out of service
UNAVAILABLE_DEVICE_STATUSES = frozenset(
    {
        "disabled",
        "in_repair",
        "in_maintenance",
        "מושבת",
        "בתיקון",
        "בתחזוקה",
    }
)
