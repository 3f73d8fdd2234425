from __future__ import annotations

import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, String

from .db import Base

SALE_STATUS_LEAD = "LEAD"
SALE_STATUS_OFFER = "OFFER"
SALE_STATUS_ACTIVE = "ACTIVE"
SALE_STATUS_LOST = "LOST"
SALE_STATUS_CANCELLED = "CANCELLED"

SALE_STATUSES = (
    SALE_STATUS_LEAD,
    SALE_STATUS_OFFER,
    SALE_STATUS_ACTIVE,
    SALE_STATUS_LOST,
    SALE_STATUS_CANCELLED,
)


def _uuid_str() -> str:
    return str(uuid.uuid4())


class CustomerORM(Base):
    __tablename__ = "customers"

    id = Column(String, primary_key=True, default=_uuid_str)
    name = Column(String, nullable=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class SaleORM(Base):
    __tablename__ = "sales"

    id = Column(String, primary_key=True, default=_uuid_str)
    customer_id = Column(String, ForeignKey("customers.id"), nullable=True, index=True)
    policy_number = Column(String, nullable=True, index=True)
    customer_name = Column(String, nullable=True)
    plate_number = Column(String, nullable=True)
    amount = Column(Float, nullable=False, default=0.0)
    status = Column(String, nullable=False, default=SALE_STATUS_LEAD, index=True)
    sale_date = Column(Date, nullable=False, default=date.today, index=True)
    # policy expiry
    end_date = Column(Date, nullable=True, index=True)
    branch_id = Column(String, nullable=True, index=True)
    employee_id = Column(String, nullable=True, index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class TaskORM(Base):
    __tablename__ = "tasks"

    id = Column(String, primary_key=True, default=_uuid_str)
    sale_id = Column(String, ForeignKey("sales.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    is_completed = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class SalesTargetORM(Base):
    __tablename__ = "sales_targets"

    id = Column(String, primary_key=True, default=_uuid_str)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    amount = Column(Float, nullable=False, default=0.0)
    branch_id = Column(String, nullable=True, index=True)
    user_id = Column(String, nullable=True, index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
