"""Global constants for Bulwark.

Centralizes the numbers the resilience layer shares between modules so the
defaults of the config models, the classifier and the notifier agree.
"""

# =============================================================================
# Retry defaults (seconds)
# =============================================================================

DEFAULT_MAX_ATTEMPTS = 3
"""Attempts per operation, including the first call."""

DEFAULT_BASE_DELAY_SECONDS = 1.0
"""Delay before the second attempt."""

DEFAULT_MAX_DELAY_SECONDS = 10.0
"""Upper bound for any single backoff delay."""

DEFAULT_BACKOFF_MULTIPLIER = 2.0
"""Growth factor between successive delays."""

# =============================================================================
# Circuit breaker defaults
# =============================================================================

DEFAULT_FAILURE_THRESHOLD = 5
"""Consecutive failures that open the circuit."""

DEFAULT_RESET_TIMEOUT_SECONDS = 60.0
"""Seconds an open circuit waits before letting a trial call through."""

# =============================================================================
# Progress sessions
# =============================================================================

DEFAULT_PROGRESS_TIMEOUT_SECONDS = 8.0
"""Overall timeout for a progress session."""

DEFAULT_POLL_INTERVAL_SECONDS = 0.5
"""Interval at which the current snapshot is re-emitted."""

PROGRESS_COMPLETE_PERCENT = 100.0
"""Progress reported on successful completion."""

PROGRESS_TIMEOUT_MESSAGE = "This is taking longer than expected"
PROGRESS_COMPLETE_MESSAGE = "Ready!"
PROGRESS_ERROR_MESSAGE = "Something went wrong"

# =============================================================================
# Registries
# =============================================================================

MAX_RECENT_ERRORS = 100
"""Size of the recent-error ring buffer."""

DEFAULT_RECENT_ERRORS_LIMIT = 20
"""Default number of entries returned by get_recent_errors()."""
