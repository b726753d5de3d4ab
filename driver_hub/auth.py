"""
Identity mapping. Authentication itself happens upstream; the gateway forwards the
authenticated user id in X-Auth-User-Id and we map it one-to-one onto users.id.
"""
from fastapi import Depends, Header

from driver_hub.db import connection, get_pool
from driver_hub.errors import DriverNotFoundError

AUTH_HEADER = "X-Auth-User-Id"


async def resolve_driver_id(pool, auth_id: str) -> int:
    async with connection(pool) as conn:
        driver_id = await conn.fetchval("SELECT id FROM users WHERE auth_id = $1;", auth_id)
    if driver_id is None:
        raise DriverNotFoundError(f"no driver linked to {auth_id}")
    return driver_id


async def current_driver_id(
    x_auth_user_id: str | None = Header(default=None),
    pool=Depends(get_pool),
) -> int:
    if not x_auth_user_id:
        raise DriverNotFoundError(f"missing {AUTH_HEADER} header")
    return await resolve_driver_id(pool, x_auth_user_id)
