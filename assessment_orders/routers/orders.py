"""
Orders Router
=============

Read-only order endpoints. Query strings are handed to the service as a
flat string mapping without FastAPI-level typing, so malformed parameters
degrade to defaults or empty results instead of 422 responses.

    GET /orders            list (filters, sort, pagination)
    GET /orders/summary    count + revenue per status
    GET /orders/{order_id} single order with metadata
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from assessment_orders.core.errors import OrdersError
from assessment_orders.models.responses import OrderListResponse, OrderRecord, StatusSummary
from assessment_orders.services.order_service import OrderService, get_order_service

logger = logging.getLogger(__name__)

router = APIRouter()

ORDER_NOT_FOUND = "ORD-API-001"


def query_params(request: Request) -> Dict[str, Any]:
    """Flatten the query string; repeated keys keep their last value."""
    return dict(request.query_params)


@router.get(
    "",
    response_model=OrderListResponse,
    response_model_exclude_unset=True,
    summary="List orders",
)
async def list_orders(
    params: Dict[str, Any] = Depends(query_params),
    service: OrderService = Depends(get_order_service),
):
    """
    List orders with filters, pagination, and sorting.

    Query params:
    - page, limit (1-200, default 20)
    - status
    - userId, assessmentId
    - fromDate, toDate (dates on createdAt)
    - q (search on assessmentTitle / userEmail)
    - sortBy (createdAt|updatedAt|price|completedAt), sortDir (asc|desc)
    - includeMetadata=1 to include the metadata field
    """
    return await service.list_orders(params)


@router.get("/summary", response_model=Dict[str, StatusSummary], summary="Summarize orders by status")
async def summarize_orders(
    params: Dict[str, Any] = Depends(query_params),
    service: OrderService = Depends(get_order_service),
):
    """Count and total revenue per status for orders matching the list filters."""
    return await service.summarize_orders(params)


@router.get("/{order_id}", response_model=OrderRecord, summary="Get one order")
async def get_order(
    order_id: str,
    service: OrderService = Depends(get_order_service),
):
    """Fetch a single order by id, including metadata."""
    order = await service.get_order_by_id(order_id)
    if order is None:
        raise OrdersError(ORDER_NOT_FOUND, detail=f"order {order_id!r}", context={"order_id": order_id})
    return order
