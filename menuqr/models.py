"""
SQLAlchemy Database Models

Single-restaurant deployment:
- Restaurant account, logo and password reset state
- Dated menus built from sections and per-menu dishes
- Dish images mirrored to the image host
- Dine-in / delivery clients, orders and order items
- Dish ratings
"""

import enum
from datetime import datetime

from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    Date,
    DateTime,
    Text,
    Enum,
    ForeignKey,
    UniqueConstraint,
)

from menuqr.database import Base


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    PENDING = "pending"
    PREPARING = "preparing"
    SERVED = "served"
    CANCELLED = "cancelled"


class ClientType(str, enum.Enum):
    """Who placed the order: a table in the room or a delivery customer."""
    INTERNAL = "internal"
    EXTERNAL = "external"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


client_type_enum = Enum(ClientType, values_callable=_enum_values, name="client_type")


# =============================================================================
# RESTAURANT
# =============================================================================

class Restaurant(Base):
    """Restaurant owner account."""
    __tablename__ = "restaurant"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(100), nullable=False, unique=True, index=True)
    password = Column(String(255), nullable=False)  # bcrypt hash
    phone_number = Column(String(50), nullable=True)
    address = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)

    # Last issued access token
    token = Column(Text, nullable=True)

    # Password reset
    reset_token = Column(String(64), nullable=True, index=True)
    reset_token_expiry = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.now, nullable=False)

    def __repr__(self):
        return f"<Restaurant #{self.id} - {self.name}>"


class RestaurantLogo(Base):
    __tablename__ = "restaurant_logo"

    id = Column(Integer, primary_key=True, autoincrement=True)
    restaurant_id = Column(
        Integer, ForeignKey("restaurant.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    image_url = Column(String(500), nullable=False)
    public_id = Column(String(255), nullable=True)
    local_path = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.now, nullable=False)


# =============================================================================
# MENU STRUCTURE
# =============================================================================

class Menu(Base):
    """A dated collection of dishes."""
    __tablename__ = "menu"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    date = Column(Date, nullable=False, unique=True, index=True)
    created_at = Column(DateTime, default=datetime.now, nullable=False)

    def __repr__(self):
        return f"<Menu #{self.id} - {self.name} ({self.date})>"


class Section(Base):
    """Named grouping of dishes ("Starters", "Desserts", ...)."""
    __tablename__ = "section"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)

    def __repr__(self):
        return f"<Section #{self.id} - {self.name}>"


class Dish(Base):
    """
    A dish on one menu, inside one section.

    The same recipe served on two dates is two rows.
    """
    __tablename__ = "dish"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=True)
    section_id = Column(
        Integer, ForeignKey("section.id", ondelete="CASCADE"), nullable=False, index=True
    )
    menu_id = Column(
        Integer, ForeignKey("menu.id", ondelete="CASCADE"), nullable=False, index=True
    )

    def __repr__(self):
        return f"<Dish #{self.id} - {self.name} (menu {self.menu_id})>"


class DishImage(Base):
    __tablename__ = "dish_image"

    id = Column(Integer, primary_key=True, autoincrement=True)
    dish_id = Column(
        Integer, ForeignKey("dish.id", ondelete="CASCADE"), nullable=False, index=True
    )
    image_url = Column(String(500), nullable=False)
    public_id = Column(String(255), nullable=True)
    local_path = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.now, nullable=False)


# =============================================================================
# CLIENTS & ORDERS
# =============================================================================

class InternalClient(Base):
    """Dine-in client identified by table number."""
    __tablename__ = "internal_client"

    id = Column(Integer, primary_key=True, autoincrement=True)
    table_number = Column(Integer, nullable=False, index=True)
    session_token = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.now, nullable=False)


class ExternalClient(Base):
    """Delivery client identified by address."""
    __tablename__ = "external_client"

    id = Column(Integer, primary_key=True, autoincrement=True)
    address = Column(String(500), nullable=False)
    phone_number = Column(String(50), nullable=True)
    session_token = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.now, nullable=False)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    menu_id = Column(
        Integer, ForeignKey("menu.id", ondelete="CASCADE"), nullable=False, index=True
    )
    client_type = Column(
        client_type_enum,
        nullable=False,
    )
    internal_client_id = Column(
        Integer, ForeignKey("internal_client.id", ondelete="SET NULL"), nullable=True
    )
    external_client_id = Column(
        Integer, ForeignKey("external_client.id", ondelete="SET NULL"), nullable=True
    )
    status = Column(
        Enum(OrderStatus, values_callable=_enum_values, name="order_status"),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True,
    )
    created_at = Column(DateTime, default=datetime.now, nullable=False, index=True)
    updated_at = Column(DateTime, onupdate=datetime.now, nullable=True)

    def __repr__(self):
        return f"<Order #{self.id} - {self.client_type.value} - {self.status.value}>"


class OrderItem(Base):
    __tablename__ = "order_item"
    __table_args__ = (UniqueConstraint("order_id", "dish_id", name="uq_order_item_dish"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(
        Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    dish_id = Column(
        Integer, ForeignKey("dish.id", ondelete="CASCADE"), nullable=False, index=True
    )
    quantity = Column(Integer, nullable=False, default=1)


class DishRating(Base):
    __tablename__ = "dish_rating"

    id = Column(Integer, primary_key=True, autoincrement=True)
    dish_id = Column(
        Integer, ForeignKey("dish.id", ondelete="CASCADE"), nullable=False, index=True
    )
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    client_id = Column(Integer, nullable=False)
    client_type = Column(
        client_type_enum,
        nullable=False,
    )
    created_at = Column(DateTime, default=datetime.now, nullable=False)
