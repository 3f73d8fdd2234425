"""Relational sales ledger backing the forecast engine."""

from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import and_, func
from sqlalchemy.orm import Query, Session

from ..core.forecast import CustomerRevenue, ExpiringSale
from .models import (
    SALE_STATUS_ACTIVE,
    SALE_STATUSES,
    CustomerORM,
    SaleORM,
    SalesTargetORM,
    TaskORM,
)

LOGGER = logging.getLogger(__name__)


def _match_scope(query: Query, column, value: Optional[str]) -> Query:
    if value is None:
        return query.filter(column.is_(None))
    return query.filter(column == value)


class SqlSalesLedger:
    """Aggregate queries and writes over the sales, targets, customers and tasks tables."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def sum_sales(
        self,
        start: date,
        end: date,
        *,
        branch_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> float:
        query = self.session.query(func.sum(SaleORM.amount)).filter(
            SaleORM.status == SALE_STATUS_ACTIVE,
            SaleORM.sale_date >= start,
            SaleORM.sale_date <= end,
        )
        if branch_id:
            query = query.filter(SaleORM.branch_id == branch_id)
        if user_id:
            query = query.filter(SaleORM.employee_id == user_id)
        return float(query.scalar() or 0)

    def sum_targets(
        self,
        month: int,
        year: int,
        *,
        branch_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> float:
        query = self.session.query(func.sum(SalesTargetORM.amount)).filter(
            SalesTargetORM.month == month,
            SalesTargetORM.year == year,
        )
        if branch_id:
            query = query.filter(SalesTargetORM.branch_id == branch_id)
        if user_id:
            query = query.filter(SalesTargetORM.user_id == user_id)
        return float(query.scalar() or 0)

    def customer_revenue(self) -> List[CustomerRevenue]:
        rows = (
            self.session.query(
                CustomerORM.id,
                CustomerORM.name,
                func.coalesce(func.sum(SaleORM.amount), 0.0),
                func.count(SaleORM.id),
            )
            .outerjoin(
                SaleORM,
                and_(SaleORM.customer_id == CustomerORM.id, SaleORM.status == SALE_STATUS_ACTIVE),
            )
            .group_by(CustomerORM.id, CustomerORM.name, CustomerORM.created_at)
            .order_by(CustomerORM.created_at)
            .all()
        )
        return [
            CustomerRevenue(
                customer_id=customer_id,
                name=name,
                total_revenue=float(total),
                sale_count=int(count),
            )
            for customer_id, name, total, count in rows
        ]

    def expiring_sales(self, start: date, end: date) -> List[ExpiringSale]:
        open_tasks = (
            self.session.query(TaskORM.sale_id, func.count(TaskORM.id).label("open_tasks"))
            .filter(TaskORM.is_completed.is_(False))
            .group_by(TaskORM.sale_id)
            .subquery()
        )
        rows = (
            self.session.query(SaleORM, func.coalesce(open_tasks.c.open_tasks, 0))
            .outerjoin(open_tasks, open_tasks.c.sale_id == SaleORM.id)
            .filter(
                SaleORM.status == SALE_STATUS_ACTIVE,
                SaleORM.end_date >= start,
                SaleORM.end_date <= end,
            )
            .order_by(SaleORM.end_date)
            .all()
        )
        return [
            ExpiringSale(
                sale_id=sale.id,
                customer_name=sale.customer_name,
                policy_number=sale.policy_number,
                end_date=sale.end_date,
                amount=float(sale.amount),
                open_tasks=int(count),
            )
            for sale, count in rows
        ]

    def add_customer(self, name: str) -> CustomerORM:
        customer = CustomerORM(name=name)
        self.session.add(customer)
        self.session.commit()
        self.session.refresh(customer)
        return customer

    def add_task(self, sale_id: str, title: str, *, is_completed: bool = False) -> TaskORM:
        if self.session.get(SaleORM, sale_id) is None:
            raise LookupError(f"Unknown sale: {sale_id}")

        task = TaskORM(sale_id=sale_id, title=title, is_completed=is_completed)
        self.session.add(task)
        self.session.commit()
        self.session.refresh(task)
        return task

    def record_sale(
        self,
        *,
        amount: float,
        status: str = SALE_STATUS_ACTIVE,
        sale_date: date | None = None,
        end_date: date | None = None,
        customer_id: Optional[str] = None,
        policy_number: Optional[str] = None,
        customer_name: Optional[str] = None,
        plate_number: Optional[str] = None,
        branch_id: Optional[str] = None,
        employee_id: Optional[str] = None,
    ) -> SaleORM:
        if status not in SALE_STATUSES:
            raise ValueError(f"Unknown sale status: {status}")
        if customer_id is not None:
            customer = self.session.get(CustomerORM, customer_id)
            if customer is None:
                raise LookupError(f"Unknown customer: {customer_id}")
            customer_name = customer_name or customer.name

        sale = SaleORM(
            amount=amount,
            status=status,
            sale_date=sale_date or date.today(),
            end_date=end_date,
            customer_id=customer_id,
            policy_number=policy_number,
            customer_name=customer_name,
            plate_number=plate_number,
            branch_id=branch_id,
            employee_id=employee_id,
        )
        self.session.add(sale)
        self.session.commit()
        self.session.refresh(sale)
        return sale

    def upsert_target(
        self,
        month: int,
        year: int,
        amount: float,
        *,
        branch_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> SalesTargetORM:
        """Set the target for exactly this scope; an unset branch or user means "none"."""
        query = self.session.query(SalesTargetORM).filter(
            SalesTargetORM.month == month,
            SalesTargetORM.year == year,
        )
        query = _match_scope(query, SalesTargetORM.branch_id, branch_id)
        query = _match_scope(query, SalesTargetORM.user_id, user_id)
        target = query.first()

        if target is None:
            target = SalesTargetORM(
                month=month,
                year=year,
                amount=amount,
                branch_id=branch_id,
                user_id=user_id,
            )
            self.session.add(target)
            LOGGER.info("Creating sales target for %s/%s", month, year)
        else:
            target.amount = amount
            LOGGER.info("Updating sales target %s for %s/%s", target.id, month, year)

        self.session.commit()
        self.session.refresh(target)
        return target


__all__ = ["SqlSalesLedger"]
