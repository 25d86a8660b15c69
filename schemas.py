"""
Database Schemas for the Farmers Market backend

Each Pydantic model represents a MongoDB collection. The collection name is the
lowercased class name.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

Role = Literal["farmer", "buyer"]


class User(BaseModel):
    name: str = Field(..., min_length=1, description="Full name")
    email: EmailStr
    password_hash: str = Field(..., description="Salted password hash")
    role: Role = Field(..., description="user role: farmer | buyer")


class Product(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    price: float = Field(..., gt=0)
    quantity: int = Field(1, ge=0)
    farmer_id: str = Field(..., description="Id of the owning farmer")
    image: Optional[str] = Field(None, description="Image URL or static path")
    image_key: Optional[str] = Field(None, description="Storage key used to delete the image")


class CartItem(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class Cart(BaseModel):
    user_id: str
    products: List[CartItem] = Field(default_factory=list)


# Crop expense tracking. Stored shape only, nothing reads or writes it yet.

class AppliedInput(BaseModel):
    name: Optional[str] = None
    cost: Optional[float] = None
    date_applied: Optional[datetime] = None


class IrrigationEntry(BaseModel):
    method: Optional[str] = None
    cost: Optional[float] = None
    date: Optional[datetime] = None


class OtherExpense(BaseModel):
    description: Optional[str] = None
    cost: Optional[float] = None


class CustomEntry(BaseModel):
    type: Optional[str] = Field(None, description="Category chosen by the farmer")
    description: Optional[str] = None
    cost: Optional[float] = None
    date: Optional[datetime] = None


class Crop(BaseModel):
    farmer_id: str
    crop_name: str
    seeding_date: datetime
    fertilizers: List[AppliedInput] = Field(default_factory=list)
    pesticides: List[AppliedInput] = Field(default_factory=list)
    irrigation: List[IrrigationEntry] = Field(default_factory=list)
    other_expenses: List[OtherExpense] = Field(default_factory=list)
    custom_entries: List[CustomEntry] = Field(default_factory=list)
    harvest_date: Optional[datetime] = None
    yield_quantity: Optional[float] = None
    selling_price_per_unit: Optional[float] = None
