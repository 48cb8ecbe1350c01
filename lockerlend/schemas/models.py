from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List

from pydantic import BaseModel, Field


class TransactionStatus(Enum):
    pending_pickup = 'pending_pickup'
    active = 'active'
    pending_return = 'pending_return'
    completed = 'completed'
    cancelled = 'cancelled'
    expired = 'expired'


class LockerStatus(Enum):
    available = 'available'
    occupied = 'occupied'


class Role(Enum):
    student = 'student'
    staff = 'staff'


class Decision(Enum):
    pickup = 'pickup'
    return_ = 'return'
    deny = 'deny'


class BorrowRequest(BaseModel):
    equipment_id: int
    due_date: datetime | None = None


class BorrowCreated(BaseModel):
    transaction_id: int
    status: TransactionStatus
    equipment_name: str
    compartment_number: int
    due_date: datetime | None = None


class ReturnRequest(BaseModel):
    transaction_id: int


class Transaction(BaseModel):
    transaction_id: int
    user_id: int
    equipment_id: int
    locker_id: int | None = None
    status: TransactionStatus
    due_date: datetime | None = None
    borrow_time: datetime | None = None
    return_time: datetime | None = None
    created_at: datetime
    equipment_name: str
    compartment_number: int | None = None
    sit_id: str | None = None
    user_name: str | None = None


class TransactionList(BaseModel):
    count: int
    data: List[Transaction]


class TapRequest(BaseModel):
    rfid_uid: str = Field(min_length=1)
    locker_id: int


class TapDetails(BaseModel):
    transaction_id: int
    equipment_name: str | None = None
    compartment_number: int | None = None
    due_date: datetime | None = None


class AccessDecision(BaseModel):
    decision: Decision
    reason: str | None = None
    details: TapDetails | None = None


class Equipment(BaseModel):
    equipment_id: int
    name: str
    category: str | None = None
    description: str | None = None
    total_units: int
    available_units: int


class Locker(BaseModel):
    locker_id: int
    compartment_number: int
    location: str | None = None
    status: LockerStatus
    bound_equipment_id: int | None = None
    current_equipment_id: int | None = None


class UserCreate(BaseModel):
    sit_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)


class CardAssignment(BaseModel):
    rfid_uid: str = Field(min_length=1)


class User(BaseModel):
    user_id: int
    sit_id: str
    name: str
    email: str
    role: Role
    has_card: bool
    created_at: datetime | None = None
