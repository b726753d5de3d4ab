from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from driver_hub.auth import current_driver_id
from driver_hub.db import get_pool
from driver_hub.models import Penalty
from driver_hub.penalties import PenaltyView, list_penalties, submit_appeal

router = APIRouter(prefix="/penalties", tags=["penalties"])


class AppealBody(BaseModel):
    reason: str = Field(..., description="Why the driver disputes the penalty")


@router.get("")
async def penalties(
    driver_id: int = Depends(current_driver_id),
    pool=Depends(get_pool),
) -> dict[str, list[PenaltyView]]:
    return await list_penalties(pool, driver_id)


@router.post("/{penalty_id}/appeal")
async def appeal(
    penalty_id: int,
    body: AppealBody,
    driver_id: int = Depends(current_driver_id),
    pool=Depends(get_pool),
) -> Penalty:
    return await submit_appeal(pool, penalty_id, driver_id, body.reason)
