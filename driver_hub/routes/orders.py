from datetime import date

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel, Field

from driver_hub.auth import current_driver_id
from driver_hub.clock import local_tz, utcnow
from driver_hub.db import get_pool
from driver_hub.models import Order
from driver_hub.order_state import OrderStatus, TransitionMetadata, allowed_next
from driver_hub.orders import ensure_transition, get_order, list_orders, recent_activity, update_status
from driver_hub.storage import upload_proof

router = APIRouter(prefix="/orders", tags=["orders"])

# Stands in for the storage key while the proof upload has not happened yet
PENDING_UPLOAD = "pending"


class OrderDetail(BaseModel):
    order: Order
    allowed_next: list[OrderStatus]


class StatusUpdateBody(BaseModel):
    status: OrderStatus = Field(..., description="Requested order status")
    delivery_method: str | None = Field(default=None, description="handed, door or other (required for delivered)")
    other_method: str | None = Field(default=None, description="Free text when delivery_method is other")
    photo_proof: str | None = Field(default=None, description="Storage key of the proof image (required for delivered)")
    cancel_reason: str | None = Field(default=None, description="Stored as remark on cancellation")


@router.get("")
async def orders_for_day(
    day: date | None = None,
    driver_id: int = Depends(current_driver_id),
    pool=Depends(get_pool),
) -> dict[str, list[Order]]:
    """Orders created on `day` (default today), grouped into active, completed and cancelled."""
    day = day or utcnow().astimezone(local_tz()).date()
    return await list_orders(pool, driver_id, day)


@router.get("/recent")
async def recent_orders(
    driver_id: int = Depends(current_driver_id),
    pool=Depends(get_pool),
) -> list[Order]:
    return await recent_activity(pool, driver_id)


@router.get("/{order_id}")
async def order_detail(
    order_id: int,
    driver_id: int = Depends(current_driver_id),
    pool=Depends(get_pool),
) -> OrderDetail:
    order = await get_order(pool, order_id, driver_id)
    return OrderDetail(order=order, allowed_next=allowed_next(order.status))


@router.post("/{order_id}/status")
async def change_status(
    order_id: int,
    body: StatusUpdateBody,
    driver_id: int = Depends(current_driver_id),
    pool=Depends(get_pool),
) -> Order:
    metadata = TransitionMetadata(
        delivery_method=body.delivery_method,
        other_method=body.other_method,
        photo_proof=body.photo_proof,
        cancel_reason=body.cancel_reason,
    )
    return await update_status(pool, order_id, driver_id, body.status, metadata)


@router.post("/{order_id}/deliver")
async def deliver(
    order_id: int,
    delivery_method: str = Form(...),
    other_method: str | None = Form(default=None),
    photo: UploadFile = File(...),
    driver_id: int = Depends(current_driver_id),
    pool=Depends(get_pool),
) -> Order:
    """Upload the proof image, then finalize the delivery with its storage key."""
    # Ownership and legality are checked before anything is written to storage
    order = await get_order(pool, order_id, driver_id)
    ensure_transition(
        order,
        OrderStatus.DELIVERED,
        TransitionMetadata(delivery_method=delivery_method, other_method=other_method, photo_proof=PENDING_UPLOAD),
    )
    key = await upload_proof(order_id, photo.filename, await photo.read(), photo.content_type)
    metadata = TransitionMetadata(
        delivery_method=delivery_method,
        other_method=other_method,
        photo_proof=key,
    )
    return await update_status(pool, order_id, driver_id, OrderStatus.DELIVERED, metadata)
