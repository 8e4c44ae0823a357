from typing import Any

from pydantic import BaseModel, Field


class JobRunResponse(BaseModel):
    """Result of a manually triggered job run."""
    job: str = Field(..., description="Job name")
    result: dict[str, Any] = Field(default_factory=dict, description="Job summary")


class VendorQualityResponse(BaseModel):
    """Recomputed quality metrics of one vendor."""
    vendor_id: int
    total_orders: int
    completed_orders: int
    repeat_customers: int
    unique_customers: int
    avg_rating: float
    quality_score: float
    is_top: bool
