# models/models.py
"""
SQLAlchemy models for the five relations of the e-commerce dataset:
customers and products as dimensions, orders as the fact header and
payments / order items as line-level facts.
"""
import logging

from sqlalchemy import (
    Column,
    String,
    Integer,
    Numeric,
    DateTime,
    ForeignKey,
    delete,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, relationship

from src.errors import ClearError
from src.models.entities import EntityKind, CLEAR_ORDER

logger = logging.getLogger(__name__)

Base = declarative_base()


class Customer(Base):
    """Dimension table for customers."""

    __tablename__ = "customers"

    customer_id = Column(String(50), primary_key=True)
    customer_unique_id = Column(String(50), nullable=False, index=True)
    customer_zip_code_prefix = Column(String(10))
    customer_city = Column(String(100))
    customer_state = Column(String(2))

    orders = relationship("Order", back_populates="customer")


class Product(Base):
    """Dimension table for the product catalog."""

    __tablename__ = "products"

    product_id = Column(String(50), primary_key=True)
    product_category_name = Column(String(100), index=True)
    product_name_length = Column(Integer)
    product_description_length = Column(Integer)
    product_photos_qty = Column(Integer)
    product_weight_g = Column(Integer)
    product_length_cm = Column(Integer)
    product_height_cm = Column(Integer)
    product_width_cm = Column(Integer)

    order_items = relationship("OrderItem", back_populates="product")


class Order(Base):
    """Fact table for order headers."""

    __tablename__ = "orders"

    order_id = Column(String(50), primary_key=True)
    customer_id = Column(
        String(50), ForeignKey("customers.customer_id"), nullable=False, index=True
    )
    order_status = Column(String(20), nullable=False, index=True)
    order_purchase_timestamp = Column(DateTime, nullable=False, index=True)
    order_approved_at = Column(DateTime)
    order_delivered_carrier_date = Column(DateTime)
    order_delivered_customer_date = Column(DateTime)
    order_estimated_delivery_date = Column(DateTime)

    customer = relationship("Customer", back_populates="orders")
    payments = relationship("OrderPayment", back_populates="order")
    items = relationship("OrderItem", back_populates="order")


class OrderPayment(Base):
    """Payments of an order; split and installment payments share an order_id."""

    __tablename__ = "order_payments"

    order_id = Column(String(50), ForeignKey("orders.order_id"), primary_key=True)
    payment_sequential = Column(Integer, primary_key=True)
    payment_type = Column(String(30))
    payment_installments = Column(Integer)
    payment_value = Column(Numeric(12, 2), nullable=False)

    order = relationship("Order", back_populates="payments")


class OrderItem(Base):
    """Fact table for order line items, linking orders to products."""

    __tablename__ = "order_items"

    order_id = Column(String(50), ForeignKey("orders.order_id"), primary_key=True)
    order_item_id = Column(Integer, primary_key=True)
    product_id = Column(
        String(50), ForeignKey("products.product_id"), nullable=False, index=True
    )
    seller_id = Column(String(50), index=True)
    shipping_limit_date = Column(DateTime)
    price = Column(Numeric(12, 2), nullable=False)
    freight_value = Column(Numeric(12, 2), nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product", back_populates="order_items")


MODEL_FOR_KIND = {
    EntityKind.CUSTOMER: Customer,
    EntityKind.PRODUCT: Product,
    EntityKind.ORDER: Order,
    EntityKind.ORDER_PAYMENT: OrderPayment,
    EntityKind.ORDER_ITEM: OrderItem,
}


def define_schema(engine):
    """Create all tables in the target database if they do not exist yet."""
    Base.metadata.create_all(engine, checkfirst=True)


def clear_all(engine):
    """
    Delete every row from the five tables, children before parents.

    Runs in a single transaction; if any table cannot be cleared the whole
    clear is rolled back and ClearError names the offending table.
    """
    with engine.connect() as conn:
        trans = conn.begin()
        for kind in CLEAR_ORDER:
            table = MODEL_FOR_KIND[kind].__table__
            try:
                result = conn.execute(delete(table))
            except SQLAlchemyError as e:
                trans.rollback()
                logger.error(f"Failed to clear table {table.name}: {e}")
                raise ClearError(table.name, str(e)) from e
            logger.debug(f"Cleared {result.rowcount} rows from {table.name}")
        trans.commit()
    logger.info("All tables cleared")
