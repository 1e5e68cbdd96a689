"""
SQLAlchemy Database Models

Tables backing the ordering site and the admin back-office:
- categories / products: read-only menu reference data
- orders / order_items: immutable price snapshot plus lifecycle fields
- profiles: customer and admin accounts

Version: 1.0.0
"""

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.sql import func

from orderdesk.database import Base
from orderdesk.schemas import OrderStatus, OrderType, PaymentMethod, UserRole


def _uuid() -> str:
    return str(uuid.uuid4())


def _enum(enum_cls) -> Enum:
    # Persist enum values ("pickup"), not member names ("PICKUP")
    return Enum(enum_cls, values_callable=lambda e: [m.value for m in e], native_enum=False)


class Category(Base):
    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, default=_uuid)
    name_en = Column(String(100), nullable=False)
    name_de = Column(String(100), nullable=False)
    description_en = Column(Text, nullable=True)
    description_de = Column(Text, nullable=True)
    sort_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=_uuid)
    category_id = Column(String(36), ForeignKey("categories.id"), nullable=True, index=True)
    name_en = Column(String(100), nullable=False)
    name_de = Column(String(100), nullable=False)
    description_en = Column(Text, nullable=True)
    description_de = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    image_url = Column(String(500), nullable=True)
    is_available = Column(Boolean, default=True, nullable=False)
    is_featured = Column(Boolean, default=False, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Order(Base):
    """
    Main Order table.

    Prices are a snapshot taken at checkout and are never recomputed;
    only the lifecycle fields change after creation.
    """
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_uuid)
    order_number = Column(String(20), nullable=False, index=True)
    user_id = Column(String(36), nullable=True, index=True)

    # =========================================================================
    # CUSTOMER INFORMATION
    # =========================================================================
    customer_name = Column(String(100), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(30), nullable=True)

    # =========================================================================
    # ORDER TYPE & PAYMENT
    # =========================================================================
    order_type = Column(_enum(OrderType), nullable=False, index=True)
    payment_method = Column(_enum(PaymentMethod), nullable=False)
    payment_status = Column(String(20), default="pending", nullable=False)

    # =========================================================================
    # DELIVERY ADDRESS (Only for delivery orders)
    # =========================================================================
    delivery_address = Column(String(255), nullable=True)
    delivery_city = Column(String(100), nullable=True)
    delivery_postal_code = Column(String(20), nullable=True)

    # =========================================================================
    # PRICING SNAPSHOT
    # =========================================================================
    subtotal = Column(Numeric(10, 2), nullable=False)
    delivery_fee = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================
    status = Column(
        _enum(OrderStatus),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True
    )
    notes = Column(Text, nullable=True)
    admin_notes = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    delivery_time = Column(String(50), nullable=True)
    estimated_time = Column(Integer, nullable=True)

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Order {self.order_number} - {self.order_type.value} - {self.status.value}>"


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=_uuid)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), nullable=False)
    product_name = Column(String(100), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False, unique=True, index=True, default=_uuid)
    email = Column(String(255), nullable=False, unique=True, index=True)
    full_name = Column(String(100), nullable=True)
    phone = Column(String(30), nullable=True)
    role = Column(_enum(UserRole), default=UserRole.CUSTOMER, nullable=False)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Profile {self.email} - {self.role.value}>"
