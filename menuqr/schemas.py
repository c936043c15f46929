"""
Pydantic Schemas for Request/Response Validation

One explicit request model per endpoint body, plus the response shapes
of the current-menu tree and the health check.
"""

import re
from datetime import date, datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from menuqr.models import ClientType, OrderStatus


# =============================================================================
# FIELD RULES
# =============================================================================

NAME_PATTERN = re.compile(r"^[a-zA-Z0-9\s\-'&.]+$")
EMAIL_PATTERN = re.compile(r"^[\w\.+-]+@[\w\.-]+\.\w+$")
PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{0,15}$")
ADDRESS_PATTERN = re.compile(r"^[a-zA-Z0-9\s\-,.'#]+$")
RESET_TOKEN_PATTERN = re.compile(r"^[a-f0-9]{64}$")


def _clean_name(v: str) -> str:
    v = v.strip()
    if not 2 <= len(v) <= 100:
        raise ValueError("Restaurant name must be between 2 and 100 characters")
    if not NAME_PATTERN.match(v):
        raise ValueError("Restaurant name contains invalid characters")
    return v


def _clean_email(v: str) -> str:
    v = v.strip().lower()
    if not EMAIL_PATTERN.match(v):
        raise ValueError("Please provide a valid email address")
    if len(v) > 100:
        raise ValueError("Email must be less than 100 characters")
    return v


def _check_password_strength(v: str) -> str:
    if not 8 <= len(v) <= 128:
        raise ValueError("Password must be between 8 and 128 characters")
    if not (re.search(r"[a-z]", v) and re.search(r"[A-Z]", v) and re.search(r"\d", v)):
        raise ValueError(
            "Password must contain at least one lowercase letter, "
            "one uppercase letter, and one number"
        )
    return v


def _clean_phone(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if not v:
        return None
    if len(v) > 50 or not PHONE_PATTERN.match(v):
        raise ValueError("Please provide a valid phone number")
    return v


def _clean_address(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if not v:
        return None
    if len(v) > 500:
        raise ValueError("Address must be less than 500 characters")
    if not ADDRESS_PATTERN.match(v):
        raise ValueError("Address contains invalid characters")
    return v


def _clean_description(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if len(v) > 1000:
        raise ValueError("Description must be less than 1000 characters")
    return v


# =============================================================================
# AUTH
# =============================================================================

class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str
    phone_number: Optional[str] = None
    address: Optional[str] = None
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _clean_name(v)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _clean_email(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password_strength(v)

    @field_validator("phone_number")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        return _clean_phone(v)

    @field_validator("address")
    @classmethod
    def validate_address(cls, v: Optional[str]) -> Optional[str]:
        return _clean_address(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return _clean_description(v)


class LoginRequest(BaseModel):
    email: str
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _clean_email(v)


class ForgotPasswordRequest(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _clean_email(v)


class VerifyResetTokenRequest(BaseModel):
    token: str = Field(..., min_length=1)


class ResetPasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: str
    new_password: str = Field(..., alias="newPassword")

    @field_validator("token")
    @classmethod
    def validate_token(cls, v: str) -> str:
        if len(v) != 64:
            raise ValueError("Invalid reset token format")
        if not RESET_TOKEN_PATTERN.match(v):
            raise ValueError("Reset token must be a valid hexadecimal string")
        return v

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str) -> str:
        return _check_password_strength(v)


# =============================================================================
# RESTAURANT
# =============================================================================

class ProfileUpdateRequest(BaseModel):
    """Partial update; omitted fields keep their stored value."""
    name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _clean_name(v)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _clean_email(v)

    @field_validator("phone_number")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        return _clean_phone(v)

    @field_validator("address")
    @classmethod
    def validate_address(cls, v: Optional[str]) -> Optional[str]:
        return _clean_address(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return _clean_description(v)


class ExportedMenu(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str


class ExportedSection(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str


class ExportedDish(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    description: Optional[str] = None
    price: Optional[float] = None
    section_id: int


class MenuExportData(BaseModel):
    """Shape produced by GET /api/restaurant/export/{menu_id}."""
    model_config = ConfigDict(extra="ignore")

    menu: ExportedMenu
    dishes: List[ExportedDish] = Field(default_factory=list)
    sections: List[ExportedSection] = Field(default_factory=list)


class MenuImportRequest(BaseModel):
    menu_data: MenuExportData
    new_date: date
    new_name: Optional[str] = Field(None, max_length=100)


class CleanupRequest(BaseModel):
    days_old: int = Field(default=90, ge=1)


# =============================================================================
# MENU
# =============================================================================

class MenuCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    date: date


class MenuUpdateRequest(BaseModel):
    menu_id: int
    name: str = Field(..., min_length=1, max_length=100)
    date: date


class MenuDeleteRequest(BaseModel):
    menu_id: int


class MenuCopyRequest(BaseModel):
    source_menu_id: int
    new_date: date
    new_name: Optional[str] = Field(None, max_length=100)


class MenuMeta(BaseModel):
    is_todays_menu: bool
    is_fallback: bool
    server_date: str
    menu_date: str


class DishNode(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: Optional[float] = None
    images: List[str] = Field(default_factory=list)


class SectionNode(BaseModel):
    id: int
    name: str
    dishes: List[DishNode] = Field(default_factory=list)


class CurrentMenuResponse(BaseModel):
    id: int
    name: str
    date: str
    sections: List[SectionNode]
    meta: MenuMeta


# =============================================================================
# SECTION
# =============================================================================

def _clean_section_name(v: str) -> str:
    v = v.strip()
    if not 1 <= len(v) <= 100:
        raise ValueError("Section name must be between 1 and 100 characters")
    return v


class SectionCreateRequest(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _clean_section_name(v)


class SectionUpdateRequest(BaseModel):
    section_id: int
    name: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _clean_section_name(v)


class SectionDeleteRequest(BaseModel):
    section_id: int


# =============================================================================
# DISH
# =============================================================================

class DishCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    section_id: int
    menu_id: int


class DishUpdateRequest(BaseModel):
    dish_id: int
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    section_id: int


class DishDeleteRequest(BaseModel):
    dish_id: int


class DishImageRemoveRequest(BaseModel):
    dish_id: int
    image_url: str = Field(..., min_length=1)


class BulkDishItem(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    section_id: int


class BulkDishCreateRequest(BaseModel):
    menu_id: int
    dishes: List[BulkDishItem]


# =============================================================================
# CLIENTS & ORDERS
# =============================================================================

class InternalClientCreateRequest(BaseModel):
    table_number: int = Field(..., ge=1)


class ExternalClientCreateRequest(BaseModel):
    address: str = Field(..., min_length=1, max_length=500)
    phone_number: Optional[str] = None

    @field_validator("phone_number")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        return _clean_phone(v)


class ClientDeleteRequest(BaseModel):
    client_id: int


class OrderDishItem(BaseModel):
    dish_id: int
    quantity: int = Field(..., ge=1)


class OrderCreateRequest(BaseModel):
    menu_id: int
    client_id: int
    client_type: ClientType
    dishes: List[OrderDishItem] = Field(..., min_length=1)


class OrderStatusUpdateRequest(BaseModel):
    order_id: int
    status: OrderStatus


class OrderRefRequest(BaseModel):
    order_id: int


class OrderItemAddRequest(BaseModel):
    order_id: int
    dish_id: int
    quantity: int = Field(..., ge=1)


class OrderItemRemoveRequest(BaseModel):
    order_id: int
    dish_id: int


class OrderItemQuantityRequest(BaseModel):
    """A quantity of zero or less removes the item."""
    order_id: int
    dish_id: int
    quantity: int


# =============================================================================
# STATISTICS
# =============================================================================

class DishRatingRequest(BaseModel):
    dish_id: int
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=1000)
    client_id: int
    client_type: ClientType


# =============================================================================
# OPERATIONAL
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    redis: str
    email_service: str
    image_host: str
    timestamp: datetime
