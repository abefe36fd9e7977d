"""
Formatting utilities for display values.
"""


def format_timeframe(days_until_due: int) -> str:
    """Describe a due date relative to today.

    -1 -> "yesterday", -3 -> "3 days ago", 0 -> "today",
    1 -> "tomorrow", 5 -> "in 5 days"
    """
    if days_until_due < 0:
        days_past = abs(days_until_due)
        return "yesterday" if days_past == 1 else f"{days_past} days ago"
    if days_until_due == 0:
        return "today"
    if days_until_due == 1:
        return "tomorrow"
    return f"in {days_until_due} days"
