"""
Schemas

Pydantic models for stored documents and for request/response bodies.
User and Product are the MongoDB documents; the collection name is the
model name lowercased. Orders live in the relational store (see orders.py)
and are only described here for responses.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class User(BaseModel):
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address")
    password_hash: str = Field(..., description="BCrypt hashed password")
    role: str = Field("customer", description="Role: customer | admin")


class Product(BaseModel):
    sku: str
    name: str
    price: float = Field(..., ge=0)
    category: str
    updated_at: datetime


# Auth bodies
class RegisterInput(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=1)
    role: Optional[str] = None


class LoginInput(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: dict


# Catalog bodies
class ProductIn(BaseModel):
    sku: str
    name: str
    price: float = Field(..., ge=0)
    category: str


class ProductUpdate(BaseModel):
    sku: Optional[str] = None
    name: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    category: Optional[str] = None


# Cart
class CartItemIn(BaseModel):
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(default=1, gt=0)


class CartEntry(BaseModel):
    product_id: str
    quantity: int


# Orders
class OrderItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: str
    quantity: int
    price_at_purchase: float


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    total: float
    created_at: datetime
    items: List[OrderItemOut] = Field(default_factory=list)
