from typing import Literal

from fastapi import APIRouter, Depends

from driver_hub.auth import current_driver_id
from driver_hub.db import get_pool
from driver_hub.models import Notification
from driver_hub.notifications import list_notifications, mark_read

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
async def notifications(
    type: Literal["order", "payment", "penalty", "system"] | None = None,
    driver_id: int = Depends(current_driver_id),
    pool=Depends(get_pool),
) -> list[Notification]:
    return await list_notifications(pool, driver_id, type)


@router.post("/{notification_id}/read")
async def read(
    notification_id: int,
    driver_id: int = Depends(current_driver_id),
    pool=Depends(get_pool),
) -> Notification:
    return await mark_read(pool, notification_id, driver_id)
