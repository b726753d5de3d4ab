"""
Request-scoped copies of database rows. Built from asyncpg records with from_record().
"""
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from driver_hub.order_state import OrderStatus


class Record(BaseModel):
    @classmethod
    def from_record(cls, row):
        return cls.model_validate(dict(row))


class Driver(Record):
    id: int
    auth_id: str
    full_name: str | None = None
    email: str | None = None
    phone: str | None = None
    vehicle_number: str | None = None
    vehicle_type: str | None = None
    photo: str | None = None
    is_active: bool = False
    created_at: datetime | None = None


class Order(Record):
    id: int
    driver_id: int
    status: OrderStatus
    total_amount: Decimal = Decimal("0")
    payment_method: str | None = None
    payment_status: str | None = None
    start: str | None = None
    destination: str | None = None
    remark: str | None = None
    photo_proof: str | None = None
    completion_time: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None


class DriverSession(Record):
    id: int
    user_id: int
    start_time: datetime
    end_time: datetime | None = None


class Penalty(Record):
    id: int
    driver_id: int
    order_id: int | None = None
    amount: Decimal
    severity: str = "medium"
    status: str = "pending"
    appeal_status: str = "none"
    appeal_reason: str | None = None
    can_appeal: bool = True
    reason: str | None = None
    resolution_notes: str | None = None
    created_at: datetime
    updated_at: datetime | None = None


class Notification(Record):
    id: int
    recipient_id: int
    recipient_type: str = "driver"
    type: str = "system"
    title: str
    message: str | None = None
    is_read: bool = False
    created_at: datetime


class Review(Record):
    id: int
    user_id: int
    order_id: int | None = None
    rating: int
    comment: str | None = None
    created_at: datetime
