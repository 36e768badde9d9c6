"""
Table Performance Score

Rates a lead table from its daily stats on a 0-100 scale:

    Score = Lead_Volume x 0.40 + Growth_Rate x 0.35 + Data_Freshness x 0.25

- Lead_Volume: total leads against a 10,000 lead reference, capped at 100
- Growth_Rate: 50 is neutral; each percent of day-over-day change moves
  it by 2 points, clamped to 0-100. New activity with no baseline is 60
- Data_Freshness: share of all leads that arrived today or yesterday,
  doubled and capped at 100

Grades:
    >=95 A+ Exceptional, >=90 A Excellent, >=85 B+ Very Good, >=80 B Good,
    >=75 C+ Above Average, >=70 C Average, >=60 D Below Average, else F Poor
"""

import logging
import math
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)


VOLUME_REFERENCE = 10_000
TREND_THRESHOLD_PERCENT = 10.0

WEIGHTS = {
    "lead_volume": 0.40,
    "growth_rate": 0.35,
    "data_freshness": 0.25,
}

GRADE_THRESHOLDS = [
    (95, "A+", "Exceptional"),
    (90, "A", "Excellent"),
    (85, "B+", "Very Good"),
    (80, "B", "Good"),
    (75, "C+", "Above Average"),
    (70, "C", "Average"),
    (60, "D", "Below Average"),
]


class Trend(Enum):
    """Day-over-day direction."""
    UP = "up"
    DOWN = "down"
    STABLE = "stable"
    NEW = "new"       # Activity today with no baseline yesterday
    NONE = "none"     # No activity on either day


@dataclass
class ScoreBreakdown:
    """Component scores, each 0-100."""
    lead_volume: int = 0
    growth_rate: int = 0
    data_freshness: int = 0


@dataclass
class PerformanceScore:
    """Performance rating for one table."""
    table_name: str
    score: int
    grade: str
    label: str
    trend: Trend
    change_percent: Optional[float] = None
    breakdown: ScoreBreakdown = field(default_factory=ScoreBreakdown)

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["trend"] = self.trend.value
        return result


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def get_grade(score: float) -> Dict[str, str]:
    for threshold, grade, label in GRADE_THRESHOLDS:
        if score >= threshold:
            return {"grade": grade, "label": label}
    return {"grade": "F", "label": "Poor"}


def get_trend(today: int, yesterday: int) -> Dict[str, Any]:
    """Trend and percent change, today against yesterday."""
    if yesterday == 0:
        return {"trend": Trend.NEW if today > 0 else Trend.NONE, "change_percent": None}

    change = (today - yesterday) / yesterday * 100
    if change > TREND_THRESHOLD_PERCENT:
        trend = Trend.UP
    elif change < -TREND_THRESHOLD_PERCENT:
        trend = Trend.DOWN
    else:
        trend = Trend.STABLE
    return {"trend": trend, "change_percent": round(change, 1)}


def calculate_performance_score(
    table_name: str,
    total_leads: int,
    today_leads: int,
    yesterday_leads: int,
    has_data: bool = True,
) -> PerformanceScore:
    """Score one table from its lifetime total and last two days."""
    trend = get_trend(today_leads, yesterday_leads)

    if not has_data or total_leads <= 0:
        return PerformanceScore(
            table_name=table_name,
            score=0,
            grade="F",
            label="No Data",
            trend=trend["trend"],
            change_percent=trend["change_percent"],
        )

    lead_volume = min(100.0, total_leads / VOLUME_REFERENCE * 100)

    growth_rate = 50.0
    if yesterday_leads > 0:
        growth_percent = (today_leads - yesterday_leads) / yesterday_leads * 100
        growth_rate = max(0.0, min(100.0, 50 + growth_percent * 2))
    elif today_leads > 0:
        growth_rate = 60.0

    data_freshness = min(100.0, (today_leads + yesterday_leads) / total_leads * 200)

    score = _round_half_up(
        lead_volume * WEIGHTS["lead_volume"]
        + growth_rate * WEIGHTS["growth_rate"]
        + data_freshness * WEIGHTS["data_freshness"]
    )
    grade = get_grade(score)

    return PerformanceScore(
        table_name=table_name,
        score=score,
        grade=grade["grade"],
        label=grade["label"],
        trend=trend["trend"],
        change_percent=trend["change_percent"],
        breakdown=ScoreBreakdown(
            lead_volume=_round_half_up(lead_volume),
            growth_rate=_round_half_up(growth_rate),
            data_freshness=_round_half_up(data_freshness),
        ),
    )


def score_daily_stats(stats: List[Mapping[str, Any]]) -> List[PerformanceScore]:
    """Score every daily stats record, best first."""
    scores = [
        calculate_performance_score(
            table_name=record["table_name"],
            total_leads=record.get("total_records", 0),
            today_leads=record.get("today", 0),
            yesterday_leads=record.get("yesterday", 0),
            has_data=record.get("has_data", False),
        )
        for record in stats
    ]
    scores.sort(key=lambda s: s.score, reverse=True)
    return scores
