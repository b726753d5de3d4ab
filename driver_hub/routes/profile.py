from fastapi import APIRouter, Depends, File, Query, UploadFile
from pydantic import BaseModel

from driver_hub.auth import current_driver_id
from driver_hub.db import get_pool
from driver_hub.models import Driver
from driver_hub.profile import ReviewSummary, get_profile, list_reviews, set_photo, summarize_reviews, update_profile
from driver_hub.storage import upload_photo

router = APIRouter(prefix="/profile", tags=["profile"])


class ProfileUpdateBody(BaseModel):
    full_name: str | None = None
    phone: str | None = None
    vehicle_number: str | None = None
    vehicle_type: str | None = None


@router.get("")
async def profile(driver_id: int = Depends(current_driver_id), pool=Depends(get_pool)) -> Driver:
    return await get_profile(pool, driver_id)


@router.patch("")
async def edit_profile(
    body: ProfileUpdateBody,
    driver_id: int = Depends(current_driver_id),
    pool=Depends(get_pool),
) -> Driver:
    return await update_profile(pool, driver_id, body.model_dump(exclude_unset=True))


@router.post("/photo")
async def photo(
    file: UploadFile = File(...),
    driver_id: int = Depends(current_driver_id),
    pool=Depends(get_pool),
) -> Driver:
    key = await upload_photo(driver_id, file.filename, await file.read(), file.content_type)
    return await set_photo(pool, driver_id, key)


@router.get("/reviews")
async def reviews(
    rating: int | None = Query(default=None, ge=1, le=5),
    driver_id: int = Depends(current_driver_id),
    pool=Depends(get_pool),
) -> ReviewSummary:
    return summarize_reviews(await list_reviews(pool, driver_id, rating))
