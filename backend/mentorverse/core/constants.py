# backend/mentorverse/core/constants.py
"""
Scheduling policy numbers shared by the scheduler, the schemas and the tests.
"""

MIN_DURATION_MINUTES = 15
MAX_DURATION_MINUTES = 480  # 8 hours

# Cancellation: allowed only this far ahead, half refund inside the full-refund window
CANCELLATION_NOTICE_HOURS = 24
FULL_REFUND_NOTICE_HOURS = 48
PARTIAL_REFUND_RATE = 0.5

RESCHEDULE_NOTICE_HOURS = 48
MAX_RESCHEDULES = 3

TITLE_MIN_LENGTH = 5
TITLE_MAX_LENGTH = 200
DESCRIPTION_MIN_LENGTH = 10
DESCRIPTION_MAX_LENGTH = 1000
REASON_MAX_LENGTH = 500
REVIEW_MAX_LENGTH = 1000

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
SORTABLE_FIELDS = ("scheduled_start", "created_at", "status")

AVAILABILITY_HORIZON_DAYS = 30
CHAT_HISTORY_LIMIT = 12
