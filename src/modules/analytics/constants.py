"""Reporting ranges and limits."""

RANGE_DAYS: dict[str, int] = {
    "7d": 7,
    "30d": 30,
    "90d": 90,
    "1y": 365,
}
DEFAULT_RANGE = "30d"

MONTHS_SHOWN = 12
TOP_SELLERS_LIMIT = 10
