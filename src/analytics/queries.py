# src/analytics/queries.py
"""
Read-only aggregate queries answering the three business questions:
top spending customers, best selling categories and the monthly sales pattern.
"""
import logging
from decimal import Decimal
from typing import List, NamedTuple

from sqlalchemy import Float, desc, extract, func, select
from sqlalchemy.orm import Session

from src.errors import InvalidQueryParameterError, NotLoadedError
from src.models.database import Database, LoadStatus
from src.models.models import Customer, Order, OrderItem, OrderPayment, Product

logger = logging.getLogger(__name__)

DELIVERED = "delivered"
CENTS = Decimal("0.01")


class CustomerSpend(NamedTuple):
    customer_unique_id: str
    total_spent: Decimal


class CategorySales(NamedTuple):
    category: str
    items_sold: int


class MonthlySales(NamedTuple):
    year: int
    month: int
    average_order_value: float
    order_count: int


def _validate_limit(n) -> int:
    if isinstance(n, bool) or not isinstance(n, int) or n < 0:
        raise InvalidQueryParameterError(f"n must be a non-negative integer, got {n!r}")
    return n


def _ensure_loaded(db: Database, session: Session, *models):
    if db.load_status == LoadStatus.IN_PROGRESS:
        raise NotLoadedError("A load is in progress; query again once it completes")
    for model in models:
        if session.execute(select(model.__table__).limit(1)).first() is None:
            raise NotLoadedError(f"Table '{model.__tablename__}' has not been loaded")


def _to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENTS)


def top_spending_customers(db: Database, n: int = 10) -> List[CustomerSpend]:
    """
    Customers ranked by the total paid on their delivered orders.

    Totals are compared at cent precision, so ties are broken by
    customer_unique_id ascending even where the backend sums money as floats.
    """
    n = _validate_limit(n)
    with db.session() as session:
        _ensure_loaded(db, session, Customer, Order, OrderPayment)

        total = func.sum(OrderPayment.payment_value).label("total_spent")
        stmt = (
            select(Customer.customer_unique_id, total)
            .join(Order, Order.customer_id == Customer.customer_id)
            .join(OrderPayment, OrderPayment.order_id == Order.order_id)
            .where(Order.order_status == DELIVERED)
            .group_by(Customer.customer_unique_id)
            .order_by(desc(func.round(total, 2)), Customer.customer_unique_id)
            .limit(n)
        )
        rows = session.execute(stmt).all()

    return [CustomerSpend(uid, _to_money(spent)) for uid, spent in rows]


def top_selling_categories(db: Database, n: int = 10) -> List[CategorySales]:
    """Categories ranked by number of items sold; ties by name ascending."""
    n = _validate_limit(n)
    with db.session() as session:
        _ensure_loaded(db, session, Product, OrderItem)

        items_sold = func.count().label("items_sold")
        stmt = (
            select(Product.product_category_name, items_sold)
            .select_from(OrderItem)
            .join(Product, Product.product_id == OrderItem.product_id)
            .where(Product.product_category_name.is_not(None))
            .group_by(Product.product_category_name)
            .order_by(desc(items_sold), Product.product_category_name)
            .limit(n)
        )
        rows = session.execute(stmt).all()

    return [CategorySales(category, int(count)) for category, count in rows]


def monthly_sales_pattern(db: Database) -> List[MonthlySales]:
    """
    Average delivered order value and order count per purchase month.

    An order's value is the sum of its payments. Months without delivered
    orders are left out rather than reported as zero.
    """
    with db.session() as session:
        _ensure_loaded(db, session, Order, OrderPayment)

        order_totals = (
            select(
                Order.order_id.label("order_id"),
                Order.order_purchase_timestamp.label("purchased_at"),
                func.sum(OrderPayment.payment_value).label("order_value"),
            )
            .join(OrderPayment, OrderPayment.order_id == Order.order_id)
            .where(Order.order_status == DELIVERED)
            .group_by(Order.order_id, Order.order_purchase_timestamp)
            .subquery()
        )

        year = extract("year", order_totals.c.purchased_at).label("year")
        month = extract("month", order_totals.c.purchased_at).label("month")
        stmt = (
            select(
                year,
                month,
                func.avg(order_totals.c.order_value, type_=Float).label(
                    "average_order_value"
                ),
                func.count(order_totals.c.order_id).label("order_count"),
            )
            .group_by(year, month)
            .order_by(year, month)
        )
        rows = session.execute(stmt).all()

    return [
        MonthlySales(int(y), int(m), float(avg), int(count))
        for y, m, avg, count in rows
    ]
