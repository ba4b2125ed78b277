"""
Application-wide constants.
Centralizes magic numbers that are not business-hours policy.
"""

# Validation limits
MAX_NOTES_LENGTH = 1000
MAX_BLOCK_REASON_LENGTH = 500
MAX_WALK_IN_NOTES_LENGTH = 500

# Query limits
SCHEDULE_BLOCKS_LIST_LIMIT = 200

# Reference data (services, staff, rooms) changes rarely
REFERENCE_CACHE_TTL_MINUTES = 5

# Postgres error codes raised when a commit overlaps an existing booking:
# exclusion_violation and unique_violation
BOOKING_CONFLICT_ERROR_CODES = ("23P01", "23505")
