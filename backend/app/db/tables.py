"""
Single source of truth for database tables that exist after migrations (001).

Use these names when writing raw SQL (e.g. TRUNCATE). Order is child-first so it is safe for FKs.
"""
ALL_TABLE_NAMES = (
    "followup_states",
    "bookings",
    "blackout_ranges",
    "availability_windows",
    "practitioners",
    "patients",
    "job_leases",
)

# Tables cleared when resetting scheduler bookkeeping (leases only; markers live on rows).
SCHEDULER_TABLE_NAMES = ("job_leases",)
