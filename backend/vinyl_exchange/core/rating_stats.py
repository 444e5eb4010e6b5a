"""Rating Stats — normalizes the per-user review aggregate into a stable response shape.

Invariants:
    - Never raises on empty input — zero reviews yields total_reviews 0 and 0.0 averages
    - Averages rounded to 2 decimals
    - Returns a flat dict (serializable as JSON)

Design Decisions:
    - Aggregation itself runs in SQL (one query); this module only shapes the row,
      so the zero-review case is handled in one place instead of every caller
"""

from vinyl_exchange.core.domain_types import RatingCategory

NEUTRAL_AVERAGE: float = 0.0


def summarize_rating_stats(total: int | None, averages: dict[str, float | None]) -> dict:
    """Shape aggregate averages (keyed by category value) into the stats response."""
    count = int(total or 0)
    stats: dict = {}
    for category in RatingCategory:
        value = averages.get(category.value)
        if count == 0 or value is None:
            stats[f"{category.value}_avg"] = NEUTRAL_AVERAGE
        else:
            stats[f"{category.value}_avg"] = round(float(value), 2)
    stats["total_reviews"] = count
    return stats
