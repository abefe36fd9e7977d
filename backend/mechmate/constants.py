"""
Application constants with documented reasoning.

This file centralizes "magic numbers" used throughout the codebase,
providing clear documentation for why each value was chosen.
"""

# =============================================================================
# NOTIFICATION THRESHOLDS
# =============================================================================

# Lead time in days for each fixed threshold. A threshold fires on the single
# day where the task's due date is exactly this many days away.
# overdue_daily has no fixed lead time and is handled separately.
THRESHOLD_LEAD_DAYS = {
    "one_month": 30,
    "two_weeks": 14,
    "one_week": 7,
    "three_days": 3,
    "one_day": 1,
    "due_date": 0,
}

# Groups larger than this are summarized in one batched push instead of
# one push per task. Fixed policy, not user configurable.
MAX_INDIVIDUAL_NOTIFICATIONS_PER_GROUP = 2

# Upcoming tasks due within this many days land in the "this week" bucket
THIS_WEEK_MAX_DAYS = 7

# =============================================================================
# PUSH PAYLOAD
# =============================================================================

DEFAULT_NOTIFICATION_ICON = "/robot.png"
DEFAULT_NOTIFICATION_BADGE = "/robot.png"

# Every payload opens the dashboard; per-task deep links are not supported
DEFAULT_NOTIFICATION_URL = "/"

TEST_NOTIFICATION_TITLE = "Mechmate Test Notification"
TEST_NOTIFICATION_BODY = "Your notifications are working correctly!"

# =============================================================================
# PUSH DELIVERY
# =============================================================================

# Attempts per subscription for transient failures.
# Permanent failures (gone/invalid endpoints) are never retried.
PUSH_MAX_ATTEMPTS = 2
PUSH_INITIAL_BACKOFF_SECONDS = 1.0
PUSH_BACKOFF_MULTIPLIER = 2.0

# HTTP statuses a push service uses for an unsubscribed/expired endpoint
PUSH_GONE_STATUS_CODES = (404, 410)

# Auth rejections point at our VAPID setup, not at the subscription
PUSH_AUTH_FAILURE_STATUS_CODES = (401, 403)

# Push services keep undelivered messages for up to a day; a maintenance
# reminder older than that is stale anyway
PUSH_TTL_SECONDS = 86400

# Per-request timeout towards the push service
# 10 seconds matches the webhook timeout used elsewhere; push services should be fast
PUSH_TIMEOUT_SECONDS = 10

# =============================================================================
# SCHEDULING
# =============================================================================

# Hourly at minute 0. Thresholds are day-granular and the ledger dedups
# within a day, so hourly runs only shorten the delay after midnight.
DEFAULT_NOTIFICATION_CRON_SCHEDULE = "0 * * * *"

NOTIFICATION_JOB_ID = "notification_check"

# Background task health check interval
# 60 seconds is frequent enough to catch crashes quickly
# without adding unnecessary overhead
TASK_MONITOR_CHECK_INTERVAL_SECONDS = 60

# Notification log cleanup interval
# Daily is sufficient - retention is measured in months
RETENTION_CLEANUP_INTERVAL_SECONDS = 86400

# Ledger rows only matter for the current day; 90 days keeps a useful history
NOTIFICATION_LOG_RETENTION_DAYS = 90

# =============================================================================
# DATABASE
# =============================================================================

# SQLite busy timeout - wait for locks before failing
# 5 seconds handles most concurrent access without long hangs
# Prevents "database is locked" errors under normal load
SQLITE_BUSY_TIMEOUT_MS = 5000
