"""
Standardized response models for API documentation.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Cheap health check response."""
    status: str = Field(..., examples=["ok"], description="Service health status")
    version: str = Field(..., examples=["1.0.0"], description="Service version")
    service: str = Field(..., examples=["assessment-orders"], description="Service name")
    uptime_s: float = Field(..., description="Seconds since process start")
    timestamp: str = Field(..., description="ISO timestamp")


class OrderRecord(BaseModel):
    """One order as returned by the API."""
    id: str
    userId: str
    assessmentId: str
    assessmentTitle: str
    userEmail: str
    status: str = Field(..., examples=["PENDING"])
    price: float
    currency: str = Field(..., examples=["USD"])
    metadata: Optional[Dict[str, Any]] = Field(
        default=None, description="Present on single lookups and when includeMetadata=1"
    )
    completedAt: Optional[str] = None
    createdAt: str
    updatedAt: str


class OrderListResponse(BaseModel):
    """Paginated order listing."""
    data: List[OrderRecord] = Field(..., description="Orders on this page")
    page: int = Field(..., examples=[1], description="1-based page number")
    limit: int = Field(..., examples=[20], description="Page size (1-200)")
    total: int = Field(..., examples=[250], description="Orders matching the filters")


class StatusSummary(BaseModel):
    """Aggregate for one order status."""
    count: int = Field(..., examples=[12])
    totalRevenue: float = Field(..., examples=[359.88])
