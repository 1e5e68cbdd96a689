"""
Pydantic Schemas for Domain Records and Request/Response Validation

Rows coming back from the data store are plain dicts; these models give
them types. Money fields are Decimal and serialize as strings in JSON.

Version: 1.0.0
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


# =============================================================================
# ENUMS
# =============================================================================

class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class OrderType(str, Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"


class UserRole(str, Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"


# =============================================================================
# CART
# =============================================================================

class CartItemCreate(BaseModel):
    """Line item as submitted by the menu page, before it gets a line id."""
    product_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100, examples=["Falafel Teller"])
    unit_price: Decimal = Field(..., ge=0, examples=["8.90"])
    quantity: int = Field(default=1, examples=[2])
    notes: Optional[str] = Field(None, max_length=200)


class CartItem(BaseModel):
    """One line in the cart, keyed for merging by (product_id, notes)."""
    id: str
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int = Field(..., ge=1)
    notes: Optional[str] = None

    class Config:
        frozen = True

    @property
    def identity(self) -> tuple[str, Optional[str]]:
        return (self.product_id, self.notes)


class CartSnapshot(BaseModel):
    """Immutable view of the cart after a mutation."""
    items: tuple[CartItem, ...] = ()

    class Config:
        frozen = True

    @property
    def total_item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items


class OrderTotals(BaseModel):
    subtotal: Decimal
    delivery_fee: Decimal
    total: Decimal


class UpdateQuantityRequest(BaseModel):
    quantity: int


class CartResponse(BaseModel):
    items: list[CartItem]
    total_item_count: int
    subtotal: Decimal


# =============================================================================
# CHECKOUT
# =============================================================================

class CheckoutForm(BaseModel):
    """
    Contact and address fields of the checkout page.

    Everything is optional here; the submission flow decides what is
    required for the selected order type.
    """
    name: str = ""
    email: str = ""
    phone: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    notes: Optional[str] = None


class CheckoutRequest(CheckoutForm):
    order_type: OrderType = OrderType.PICKUP
    payment_method: PaymentMethod = PaymentMethod.CASH
    estimated_time: Optional[int] = Field(None, ge=1, le=600)


# =============================================================================
# ORDERS
# =============================================================================

class OrderItem(BaseModel):
    id: Optional[str] = None
    order_id: str
    product_id: str
    product_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class Order(BaseModel):
    """Persisted order with its price snapshot and lifecycle fields."""
    id: str
    order_number: str
    user_id: Optional[str] = None
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    order_type: OrderType
    payment_method: PaymentMethod
    payment_status: str = "pending"
    status: OrderStatus
    subtotal: Decimal
    delivery_fee: Decimal
    total: Decimal
    delivery_address: Optional[str] = None
    delivery_city: Optional[str] = None
    delivery_postal_code: Optional[str] = None
    notes: Optional[str] = None
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    delivery_time: Optional[str] = None
    estimated_time: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: list[OrderItem] = Field(default_factory=list)

    class Config:
        from_attributes = True

    @property
    def is_orphaned(self) -> bool:
        """An order without item rows is left over from a failed checkout."""
        return not self.items


class AcceptOrderRequest(BaseModel):
    delivery_time: str = Field(..., examples=["18:30"])
    admin_notes: Optional[str] = Field(None, max_length=500)


class RejectOrderRequest(BaseModel):
    rejection_reason: str = Field(..., examples=["Kitchen closing early"])


class AdminOrderListResponse(BaseModel):
    active: list[Order]
    completed: list[Order]
    orphaned: list[str]


# =============================================================================
# MENU
# =============================================================================

class Category(BaseModel):
    id: str
    name_en: str
    name_de: str
    description_en: Optional[str] = None
    description_de: Optional[str] = None
    sort_order: int = 0
    is_active: bool = True


class Product(BaseModel):
    id: str
    category_id: Optional[str] = None
    name_en: str
    name_de: str
    description_en: Optional[str] = None
    description_de: Optional[str] = None
    price: Decimal
    image_url: Optional[str] = None
    is_available: bool = True
    is_featured: bool = False
    sort_order: int = 0


# =============================================================================
# AUTH
# =============================================================================

class Profile(BaseModel):
    id: str
    user_id: str
    email: str
    full_name: Optional[str] = None
    phone: Optional[str] = None
    role: UserRole = UserRole.CUSTOMER
    created_at: Optional[datetime] = None


class AuthSession(BaseModel):
    token: str
    user_id: str
    email: str
    full_name: Optional[str] = None
    is_admin: bool = False


class SignUpRequest(BaseModel):
    email: str
    password: str
    full_name: str = ""


class SignInRequest(BaseModel):
    email: str
    password: str


class LanguagePreference(BaseModel):
    language: str = Field(..., examples=["de", "en"])


# =============================================================================
# REPORTS
# =============================================================================

class DashboardStats(BaseModel):
    today_orders: int = 0
    today_revenue: Decimal = Decimal("0.00")
    pending_orders: int = 0
    total_customers: int = 0
    recent_orders: list[Order] = Field(default_factory=list)
    orphaned_orders: list[str] = Field(default_factory=list)


class DailySales(BaseModel):
    date: str
    revenue: Decimal
    orders: int


class ProductSales(BaseModel):
    name: str
    quantity: int
    revenue: Decimal


class SalesReport(BaseModel):
    days: int
    total_revenue: Decimal = Decimal("0.00")
    total_orders: int = 0
    average_order_value: Decimal = Decimal("0.00")
    delivery_orders: int = 0
    pickup_orders: int = 0
    daily_sales: list[DailySales] = Field(default_factory=list)
    top_products: list[ProductSales] = Field(default_factory=list)


class CustomerStats(BaseModel):
    profile: Profile
    order_count: int = 0
    total_spent: Decimal = Decimal("0.00")
    last_order: Optional[datetime] = None


# =============================================================================
# MISC RESPONSES
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    data_store: str
    change_feed: str
    storage: str
    timestamp: datetime
