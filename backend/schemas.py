"""
Database Schemas for the AYPA E-commerce Platform
Each Pydantic model represents a MongoDB collection (collection name = class name lowercased).
Request payloads and partial updates live at the bottom of the file.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

Role = Literal["customer", "admin"]
PaymentMethod = Literal["credit_card", "paypal", "bank_transfer", "cash_on_delivery"]
PaymentStatus = Literal["pending", "completed", "failed", "refunded"]
OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
VerificationStatus = Literal["pending", "verified", "rejected"]
DeliveryService = Literal["Grab", "LBC", "LalaMove", "JRS", "J&T", "Other"]
ConversationStatus = Literal["active", "resolved", "pending"]
Sender = Literal["user", "admin"]


class Address(BaseModel):
    street: str
    city: str
    state: str
    zip_code: str
    country: str


# Users
class User(BaseModel):
    name: str
    email: EmailStr
    password_hash: str
    role: Role = "customer"
    phone: Optional[str] = None
    address: Optional[Address] = None
    avatar: Optional[str] = Field(default=None, description="Path or URL of the avatar image")


# Products
class Rating(BaseModel):
    user_id: str
    rating: int = Field(ge=1, le=5)
    review: Optional[str] = None
    date: datetime


class Product(BaseModel):
    name: str
    description: Optional[str] = None
    price: float = Field(ge=0)
    category: str
    image_urls: List[str] = Field(default_factory=list)
    sizes: List[str] = Field(default_factory=list)
    colors: List[str] = Field(default_factory=list)
    brand: Optional[str] = None
    stock: int = Field(default=0, ge=0)
    featured: bool = False
    ratings: List[Rating] = Field(default_factory=list)


# Carts
class CartItem(BaseModel):
    item_id: str
    product_id: str
    quantity: int = Field(ge=1)
    price: float = Field(ge=0)
    size: Optional[str] = None
    color: Optional[str] = None


class Cart(BaseModel):
    user_id: str
    items: List[CartItem] = Field(default_factory=list)
    total_amount: float = 0


# Orders
class OrderItem(BaseModel):
    product_id: str
    name: Optional[str] = Field(default=None, description="Product name at time of order")
    quantity: int = Field(ge=1)
    price: float = Field(ge=0, description="Unit price at time of order")
    size: Optional[str] = None
    color: Optional[str] = None


class PaymentInfo(BaseModel):
    account_name: Optional[str] = None
    account_number: Optional[str] = None
    reference_number: Optional[str] = None
    date_created: Optional[datetime] = None
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    verification_status: VerificationStatus = "pending"
    verification_notes: Optional[str] = None


class DeliveryInfo(BaseModel):
    service: Optional[DeliveryService] = None
    driver_name: Optional[str] = None
    contact_number: Optional[str] = None
    tracking_number: Optional[str] = None
    tracking_link: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    notes: Optional[str] = None
    assigned_by: Optional[str] = None
    assigned_at: Optional[datetime] = None


class Order(BaseModel):
    user_id: str
    items: List[OrderItem]
    total_amount: float = Field(ge=0)
    shipping_address: Address
    payment_method: PaymentMethod
    payment_info: Optional[PaymentInfo] = None
    payment_status: PaymentStatus = "pending"
    order_status: OrderStatus = "pending"
    delivery_info: Optional[DeliveryInfo] = None


# Support conversations
class Message(BaseModel):
    sender: Sender
    admin_id: Optional[str] = None
    text: str
    created_at: datetime
    read: bool = False


class Conversation(BaseModel):
    user_id: str
    title: str = "Customer Support Conversation"
    messages: List[Message] = Field(default_factory=list)
    status: ConversationStatus = "active"
    last_message: Optional[datetime] = None


# ========== REQUEST PAYLOADS ==========

class RegisterPayload(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)
    phone: Optional[str] = None
    address: Optional[Address] = None


class LoginPayload(BaseModel):
    email: EmailStr
    password: str


class ForgotPasswordPayload(BaseModel):
    email: EmailStr


class ResetPasswordPayload(BaseModel):
    token: str
    new_password: str = Field(min_length=6)


class ChangePasswordPayload(BaseModel):
    current_password: str
    new_password: str = Field(min_length=6)


class ProfileUpdate(BaseModel):
    """Every field is optional; only the ones sent (and not null) are written."""

    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[Address] = None
    avatar: Optional[str] = None


class ProductPayload(BaseModel):
    name: str
    description: Optional[str] = None
    price: float = Field(ge=0)
    category: str
    image_urls: List[str] = Field(default_factory=list)
    sizes: List[str] = Field(default_factory=list)
    colors: List[str] = Field(default_factory=list)
    brand: Optional[str] = None
    stock: int = Field(default=0, ge=0)
    featured: bool = False


class ProductUpdate(BaseModel):
    """Partial product update. A stock of 0 and featured=False are applied."""

    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    category: Optional[str] = None
    image_urls: Optional[List[str]] = None
    sizes: Optional[List[str]] = None
    colors: Optional[List[str]] = None
    brand: Optional[str] = None
    stock: Optional[int] = Field(default=None, ge=0)
    featured: Optional[bool] = None


class ReviewPayload(BaseModel):
    rating: int = Field(ge=1, le=5)
    review: Optional[str] = None


class CartItemPayload(BaseModel):
    product_id: str
    quantity: int = Field(default=1, ge=1)
    price: Optional[float] = Field(default=None, ge=0, description="Defaults to the product's current price")
    size: Optional[str] = None
    color: Optional[str] = None


class CartQuantityPayload(BaseModel):
    quantity: int


class OrderItemPayload(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)
    price: float = Field(ge=0)
    size: Optional[str] = None
    color: Optional[str] = None


class PaymentInfoPayload(BaseModel):
    account_name: Optional[str] = None
    account_number: Optional[str] = None
    reference_number: Optional[str] = None
    date_created: Optional[datetime] = None


class CreateOrderPayload(BaseModel):
    items: List[OrderItemPayload] = Field(min_length=1)
    total_amount: Optional[float] = Field(default=None, ge=0, description="Client-side total; recomputed by the server")
    shipping_address: Address
    payment_method: PaymentMethod
    payment_info: Optional[PaymentInfoPayload] = None


class OrderStatusUpdate(BaseModel):
    order_status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    tracking_number: Optional[str] = None


class PaymentVerificationPayload(BaseModel):
    verification_status: VerificationStatus
    verification_notes: Optional[str] = None


class DeliveryUpdate(BaseModel):
    service: Optional[DeliveryService] = None
    driver_name: Optional[str] = None
    contact_number: Optional[str] = None
    tracking_number: Optional[str] = None
    tracking_link: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    notes: Optional[str] = None


class CreateConversationPayload(BaseModel):
    title: Optional[str] = None
    initial_message: str = Field(min_length=1)


class MessagePayload(BaseModel):
    text: str = Field(min_length=1)


class ConversationStatusPayload(BaseModel):
    status: ConversationStatus
