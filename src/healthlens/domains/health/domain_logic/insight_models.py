"""Health insight models and domain constants.

Everything the insights engine produces or consumes is a plain dataclass.
Result types expose ``to_dict()`` returning the camelCase JSON shape the
controller layer serves; :class:`InsightsSnapshot` can also be rebuilt from
that shape, which is how cached snapshots come back out of the data bank.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Union

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

# Component keys, in the fixed evaluation order used everywhere
COMPONENT_NAMES = ["bloodPressure", "heartRate", "sleep", "exercise", "stress"]

# Metric identifiers used by insights, trends and recommendations
METRIC_BLOOD_PRESSURE = "blood_pressure"
METRIC_HEART_RATE = "heart_rate"
METRIC_SLEEP = "sleep"
METRIC_EXERCISE = "exercise"
METRIC_STRESS = "stress"
METRIC_HYDRATION = "hydration"

# Weights encode how much each dimension moves the composite score:
#   blood pressure & sleep (0.25): strongest day-to-day health markers
#   heart rate & exercise (0.20)
#   stress (0.10): self-reported, the noisiest input
HEALTH_WEIGHTS: dict[str, float] = {
    "bloodPressure": 0.25,
    "heartRate": 0.20,
    "sleep": 0.25,
    "exercise": 0.20,
    "stress": 0.10,
}

# ---------------------------------------------------------------------------
# Fallback scores for missing data
# ---------------------------------------------------------------------------

FALLBACK_NO_DATA = 50           # Metric not measured -> neutral
FALLBACK_NO_EXERCISE = 30       # No exercise logged is itself a negative signal

PRIORITY_RANK = {"high": 0, "medium": 1, "low": 2}

InsightType = Literal["alert", "warning", "positive", "info"]
InsightPriority = Literal["high", "medium", "low"]
ChangeDirection = Literal["up", "down", "stable"]
ScoreCategory = Literal["excellent", "good", "fair", "poor"]


def _iso(value: datetime) -> str:
    return value.isoformat()


def _parse_dt(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ---------------------------------------------------------------------------
# Raw signal entries (one channel each)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BloodPressureReading:
    record_id: str
    recorded_at: datetime
    systolic: float
    diastolic: float


@dataclass(frozen=True)
class HeartRateReading:
    record_id: str
    recorded_at: datetime
    bpm: float


@dataclass(frozen=True)
class TemperatureReading:
    record_id: str
    recorded_at: datetime
    celsius: float


@dataclass(frozen=True)
class RespiratoryRateReading:
    record_id: str
    recorded_at: datetime
    breaths_per_minute: float


@dataclass(frozen=True)
class OxygenSaturationReading:
    record_id: str
    recorded_at: datetime
    percent: float


VitalSign = Union[
    BloodPressureReading,
    HeartRateReading,
    TemperatureReading,
    RespiratoryRateReading,
    OxygenSaturationReading,
]


@dataclass(frozen=True)
class HealthRecordEntry:
    """Body measurements and notes attached to a journal record."""

    record_id: str
    recorded_at: datetime
    weight: float | None = None
    height: float | None = None
    bmi: float | None = None
    blood_glucose: float | None = None
    notes: str | None = None


@dataclass(frozen=True)
class SleepEntry:
    record_id: str
    recorded_at: datetime
    duration_hours: float
    quality: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class ExerciseEntry:
    entry_id: str
    recorded_at: datetime
    exercise_type: str
    duration_minutes: float
    intensity: str | None = None
    calories_burned: float | None = None
    notes: str | None = None


@dataclass(frozen=True)
class StressEntry:
    record_id: str
    recorded_at: datetime
    level: float
    triggers: tuple[str, ...] = ()
    notes: str | None = None


@dataclass(frozen=True)
class HealthDataSnapshot:
    """Immutable, time-scoped view of a user's raw health signals."""

    user_id: str
    window_start: datetime
    window_end: datetime
    vital_signs: tuple[VitalSign, ...] = ()
    health_records: tuple[HealthRecordEntry, ...] = ()
    sleep: tuple[SleepEntry, ...] = ()
    exercise: tuple[ExerciseEntry, ...] = ()
    stress: tuple[StressEntry, ...] = ()

    def data_point_count(self) -> int:
        """Total entries across all five channels."""
        return (
            len(self.vital_signs)
            + len(self.health_records)
            + len(self.sleep)
            + len(self.exercise)
            + len(self.stress)
        )

    def blood_pressure_readings(self) -> list[BloodPressureReading]:
        return [v for v in self.vital_signs if isinstance(v, BloodPressureReading)]

    def heart_rate_readings(self) -> list[HeartRateReading]:
        return [v for v in self.vital_signs if isinstance(v, HeartRateReading)]


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class MetricScore:
    score: int      # 0-100
    weight: float   # 0-1

    def to_dict(self) -> dict[str, Any]:
        return {"score": self.score, "weight": self.weight}


@dataclass
class HealthScoreResult:
    """Composite health score with its component breakdown."""

    score: int
    category: ScoreCategory
    category_label: str
    previous_score: int
    change: int
    change_direction: ChangeDirection
    components: dict[str, MetricScore] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "category": self.category,
            "categoryLabel": self.category_label,
            "previousScore": self.previous_score,
            "change": self.change,
            "changeDirection": self.change_direction,
            "components": {name: c.to_dict() for name, c in self.components.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HealthScoreResult:
        return cls(
            score=data["score"],
            category=data["category"],
            category_label=data["categoryLabel"],
            previous_score=data["previousScore"],
            change=data["change"],
            change_direction=data["changeDirection"],
            components={
                name: MetricScore(score=c["score"], weight=c["weight"])
                for name, c in data.get("components", {}).items()
            },
        )


@dataclass
class Insight:
    id: str
    type: InsightType
    priority: InsightPriority
    icon: str
    title: str
    description: str
    action_text: str
    action_link: str
    related_metrics: tuple[str, ...]
    generated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "priority": self.priority,
            "icon": self.icon,
            "title": self.title,
            "description": self.description,
            "actionText": self.action_text,
            "actionLink": self.action_link,
            "relatedMetrics": list(self.related_metrics),
            "generatedAt": _iso(self.generated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Insight:
        return cls(
            id=data["id"],
            type=data["type"],
            priority=data["priority"],
            icon=data["icon"],
            title=data["title"],
            description=data["description"],
            action_text=data["actionText"],
            action_link=data["actionLink"],
            related_metrics=tuple(data.get("relatedMetrics", [])),
            generated_at=_parse_dt(data["generatedAt"]),
        )


@dataclass
class TrendPoint:
    date: str       # YYYY-MM-DD
    value: float

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date, "value": self.value}


@dataclass
class Trend:
    metric: str
    label: str
    current_value: str
    previous_value: str
    change: float               # percent, 1 dp
    change_direction: ChangeDirection
    is_improving: bool
    data_points: list[TrendPoint] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "metric": self.metric,
            "label": self.label,
            "currentValue": self.current_value,
            "previousValue": self.previous_value,
            "change": self.change,
            "changeDirection": self.change_direction,
            "isImproving": self.is_improving,
            "dataPoints": [p.to_dict() for p in self.data_points],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Trend:
        return cls(
            metric=data["metric"],
            label=data["label"],
            current_value=data["currentValue"],
            previous_value=data["previousValue"],
            change=data["change"],
            change_direction=data["changeDirection"],
            is_improving=data["isImproving"],
            data_points=[TrendPoint(date=p["date"], value=p["value"]) for p in data.get("dataPoints", [])],
        )


@dataclass
class Recommendation:
    id: str
    icon: str
    title: str
    description: str
    category: str   # 'nutrition' | 'stress' | 'sleep' | 'exercise' | 'hydration'
    priority: int   # 1 = most important

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "icon": self.icon,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "priority": self.priority,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Recommendation:
        return cls(**{k: data[k] for k in ("id", "icon", "title", "description", "category", "priority")})


@dataclass
class Summary:
    text: str
    period: str
    last_updated: datetime
    confidence: float
    positive: list[str] = field(default_factory=list)
    concerning: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "period": self.period,
            "lastUpdated": _iso(self.last_updated),
            "confidence": self.confidence,
            "keyFindings": {
                "positive": list(self.positive),
                "concerning": list(self.concerning),
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Summary:
        findings = data.get("keyFindings", {})
        return cls(
            text=data["text"],
            period=data["period"],
            last_updated=_parse_dt(data["lastUpdated"]),
            confidence=data["confidence"],
            positive=list(findings.get("positive", [])),
            concerning=list(findings.get("concerning", [])),
        )


@dataclass
class QuickStats:
    """Headline averages over the short quick-stats window."""

    blood_pressure: str     # "118/76" or NO_DATA_LABEL
    heart_rate: int         # bpm, 0 when unmeasured
    sleep: float            # hours, 1 dp
    exercise: int           # minutes per week

    def to_dict(self) -> dict[str, Any]:
        return {
            "bloodPressure": {"value": self.blood_pressure, "unit": "mmHg"},
            "heartRate": {"value": self.heart_rate, "unit": "bpm"},
            "sleep": {"value": self.sleep, "unit": "hours"},
            "exercise": {"value": self.exercise, "unit": "min/week"},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QuickStats:
        return cls(
            blood_pressure=data["bloodPressure"]["value"],
            heart_rate=data["heartRate"]["value"],
            sleep=data["sleep"]["value"],
            exercise=data["exercise"]["value"],
        )


@dataclass
class InsightsMetadata:
    user_id: str
    generated_at: datetime
    data_points_analyzed: int
    analysis_period: int    # days
    cache_expiry: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "generatedAt": _iso(self.generated_at),
            "dataPointsAnalyzed": self.data_points_analyzed,
            "analysisPeriod": self.analysis_period,
            "cacheExpiry": _iso(self.cache_expiry),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InsightsMetadata:
        return cls(
            user_id=data["userId"],
            generated_at=_parse_dt(data["generatedAt"]),
            data_points_analyzed=data["dataPointsAnalyzed"],
            analysis_period=data["analysisPeriod"],
            cache_expiry=_parse_dt(data["cacheExpiry"]),
        )


@dataclass
class InsightsSnapshot:
    """The full result of one insights computation; the unit that is cached."""

    summary: Summary
    insights: list[Insight]
    health_score: HealthScoreResult
    quick_stats: QuickStats
    recommendations: list[Recommendation]
    trends: list[Trend]
    metadata: InsightsMetadata

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "insights": [i.to_dict() for i in self.insights],
            "healthScore": self.health_score.to_dict(),
            "quickStats": self.quick_stats.to_dict(),
            "recommendations": [r.to_dict() for r in self.recommendations],
            "trends": [t.to_dict() for t in self.trends],
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InsightsSnapshot:
        return cls(
            summary=Summary.from_dict(data["summary"]),
            insights=[Insight.from_dict(i) for i in data.get("insights", [])],
            health_score=HealthScoreResult.from_dict(data["healthScore"]),
            quick_stats=QuickStats.from_dict(data["quickStats"]),
            recommendations=[Recommendation.from_dict(r) for r in data.get("recommendations", [])],
            trends=[Trend.from_dict(t) for t in data.get("trends", [])],
            metadata=InsightsMetadata.from_dict(data["metadata"]),
        )


@dataclass
class CacheStats:
    hits: int
    misses: int
    hit_rate: float     # percent, 2 dp
    total: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hitRate": self.hit_rate,
            "total": self.total,
        }


@dataclass
class PhaseTimings:
    """Advisory wall-clock durations for one computation (milliseconds)."""

    total_ms: float = 0.0
    fetch_ms: float = 0.0
    process_ms: float = 0.0
    cache_write_ms: float = 0.0

    def as_metadata(self) -> dict[str, float]:
        return {
            "fetch_ms": self.fetch_ms,
            "process_ms": self.process_ms,
            "cache_write_ms": self.cache_write_ms,
        }
