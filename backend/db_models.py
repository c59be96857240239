"""
SQLAlchemy ORM models for the EcoProducts storefront.

Tables:
    products     - catalog entries managed by the admin
    orders       - submitted checkouts (one per validated cart)
    order_items  - price/quantity snapshot of each cart line at submission time
"""
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Text, ForeignKey, Index,
)
from sqlalchemy.orm import relationship

from database import Base


# ════════════════════════════════════════════════════════════════════
# Catalog
# ════════════════════════════════════════════════════════════════════

class Product(Base):
    """A product on sale in the storefront."""
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    price = Column(Numeric(10, 2), nullable=False)
    image_url = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# ════════════════════════════════════════════════════════════════════
# Orders
# ════════════════════════════════════════════════════════════════════

class Order(Base):
    """A checkout persisted after validation passed."""
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_type = Column(String(20), nullable=False, index=True)  # "local-resident" | "bulk-club"
    customer_data = Column(Text, nullable=False)  # JSON object, fields of customer_type only
    total_amount = Column(Numeric(12, 2), nullable=False)
    total_quantity = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)  # pending | processing | completed
    request_token = Column(String(64), unique=True, nullable=True)  # client-generated dedup key
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = relationship(
        "OrderItem",
        back_populates="order",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )

    __table_args__ = (
        # Admin dashboard: filter by status, newest first
        Index("ix_orders_status_created", "status", "created_at"),
    )


class OrderItem(Base):
    """
    Snapshot of one cart line.

    product_id is not a foreign key; catalog deletions leave past orders intact.
    """
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, nullable=False, index=True)
    product_name = Column(String(200), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)

    order = relationship("Order", back_populates="items")
