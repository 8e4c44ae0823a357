"""
Vendor quality score and "top vendor" badge.

Weighted sum of four 0-100 components:
- completion rate (completed / total orders) - 30%
- rating (average review rating scaled from 0-5) - 25%
- repeat rate (repeat / unique customers) - 25%
- activity (log scale of order count, capped at 100) - 20%
"""
from dataclasses import dataclass
from math import log10

from app.core.config import Settings
from app.core.exceptions import VendorMetricsError

COMPLETION_WEIGHT = 0.30
RATING_WEIGHT = 0.25
REPEAT_WEIGHT = 0.25
ACTIVITY_WEIGHT = 0.20


@dataclass(frozen=True)
class QualityThresholds:
    min_orders: int = 10
    min_quality_score: float = 75.0
    min_completion_rate: float = 0.90  # fraction
    min_avg_rating: float = 4.5

    @classmethod
    def from_settings(cls, settings: Settings) -> "QualityThresholds":
        return cls(
            min_orders=settings.MIN_ORDERS,
            min_quality_score=settings.MIN_QUALITY_SCORE,
            min_completion_rate=settings.MIN_COMPLETION_RATE,
            min_avg_rating=settings.MIN_AVG_RATING,
        )


@dataclass(frozen=True)
class VendorMetricsSnapshot:
    total_orders: int = 0
    completed_orders: int = 0
    repeat_customers: int = 0
    unique_customers: int = 0
    avg_rating: float = 0.0

    def validate(self) -> None:
        if min(self.total_orders, self.completed_orders, self.repeat_customers, self.unique_customers) < 0:
            raise VendorMetricsError(f"negative counter in {self}")
        if self.completed_orders > self.total_orders:
            raise VendorMetricsError(f"completed_orders > total_orders in {self}")
        if self.repeat_customers > self.unique_customers:
            raise VendorMetricsError(f"repeat_customers > unique_customers in {self}")
        if not 0 <= self.avg_rating <= 5:
            raise VendorMetricsError(f"avg_rating out of range in {self}")


def completion_rate(m: VendorMetricsSnapshot) -> float:
    return m.completed_orders / m.total_orders * 100 if m.total_orders > 0 else 0.0


def rating_score(m: VendorMetricsSnapshot) -> float:
    return m.avg_rating / 5 * 100


def repeat_rate(m: VendorMetricsSnapshot) -> float:
    return m.repeat_customers / m.unique_customers * 100 if m.unique_customers > 0 else 0.0


def activity_score(m: VendorMetricsSnapshot) -> float:
    return min(100.0, log10(m.total_orders + 1) * 50)


def calculate_quality_score(m: VendorMetricsSnapshot, thresholds: QualityThresholds = QualityThresholds()) -> float:
    """0-100, rounded to 2 decimals. Always 0 below thresholds.min_orders."""
    if m.total_orders < thresholds.min_orders:
        return 0.0
    score = (
        completion_rate(m) * COMPLETION_WEIGHT
        + rating_score(m) * RATING_WEIGHT
        + repeat_rate(m) * REPEAT_WEIGHT
        + activity_score(m) * ACTIVITY_WEIGHT
    )
    return round(score, 2)


def is_top_vendor(
    m: VendorMetricsSnapshot,
    quality_score: float,
    thresholds: QualityThresholds = QualityThresholds(),
) -> bool:
    """Badge requires every threshold at once."""
    completion_fraction = m.completed_orders / m.total_orders if m.total_orders > 0 else 0.0
    return (
        m.total_orders >= thresholds.min_orders
        and quality_score >= thresholds.min_quality_score
        and completion_fraction >= thresholds.min_completion_rate
        and m.avg_rating >= thresholds.min_avg_rating
    )
