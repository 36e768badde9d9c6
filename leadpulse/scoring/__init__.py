"""
Scoring for lead tables.

1. **Growth** (percent)
   Period-over-period change with fixed zero-baseline conventions.

2. **Performance Score** (0-100)
   Weighted lead volume, day-over-day growth and freshness, graded A+ to F.

Example Usage:
    from leadpulse.scoring import calculate_growth, calculate_performance_score

    calculate_growth(150, 100)   # 50.0
    calculate_growth(10, 0)      # 100.0

    score = calculate_performance_score("gb_keto_hindi", 5000, 120, 100)
    score.score, score.grade     # (54, "F")
"""

from .growth import MAX_GROWTH_PERCENT, average_growth, calculate_growth, with_growth
from .performance import (
    PerformanceScore,
    ScoreBreakdown,
    Trend,
    calculate_performance_score,
    get_grade,
    get_trend,
    score_daily_stats,
)

__all__ = [
    "MAX_GROWTH_PERCENT",
    "average_growth",
    "calculate_growth",
    "with_growth",
    "PerformanceScore",
    "ScoreBreakdown",
    "Trend",
    "calculate_performance_score",
    "get_grade",
    "get_trend",
    "score_daily_stats",
]
