import uuid
from sqlalchemy import Column, Integer, String, Float, Text, DateTime, Boolean, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


# ============================================================
# Product: one row per artifact in the catalogue
# Written only by the admin editor; read-only everywhere else
# ============================================================
class Product(Base):
    __tablename__ = "products"

    id                  = Column(String, primary_key=True, default=_uuid)
    name                = Column(String, nullable=False)
    tagline             = Column(String, default="")
    description         = Column(Text, default="")
    price               = Column(Float, nullable=False, default=0)
    image               = Column(String, default="")
    category            = Column(String, nullable=False)     # Birthday | Anniversary | Surprise | Custom Gifts
    story               = Column(Text, default="")
    customizable_fields = Column(JSON, default=list)         # ["Audio Upload", "Engraved Date"]
    materials           = Column(Text)
    process             = Column(Text)
    care                = Column(Text)
    created_at          = Column(DateTime, server_default=func.now())


# ============================================================
# User: an authenticated identity (the gateway's auth table)
# ============================================================
class User(Base):
    __tablename__ = "users"

    id            = Column(String, primary_key=True, default=_uuid)
    email         = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    created_at    = Column(DateTime, server_default=func.now())


# ============================================================
# Profile: one-to-one with User, provisioned at sign-up
# onboarding_complete gates the first-time setup flow
# ============================================================
class Profile(Base):
    __tablename__ = "profiles"

    id                   = Column(String, ForeignKey("users.id"), primary_key=True)
    first_name           = Column(String, default="")
    last_name            = Column(String, default="")
    address              = Column(String, default="")
    city                 = Column(String, default="")
    postal_code          = Column(String, default="")
    phone                = Column(String, default="")
    payment_method_last4 = Column(String, default="")
    onboarding_complete  = Column(Boolean, default=False, nullable=False)
    updated_at           = Column(DateTime, server_default=func.now())


# ============================================================
# Order: one header row per checkout
# status: processing, or incomplete when a partial write could
# not be cleaned up
# ============================================================
class Order(Base):
    __tablename__ = "orders"

    id          = Column(String, primary_key=True, default=_uuid)
    first_name  = Column(String, nullable=False)
    last_name   = Column(String, default="")
    address     = Column(String, nullable=False)
    city        = Column(String, default="")
    postal_code = Column(String, default="")
    total       = Column(Float, nullable=False)
    status      = Column(String, default="processing")
    user_id     = Column(String, ForeignKey("users.id"), nullable=True)
    created_at  = Column(DateTime, server_default=func.now())

    # ── relationship: one Order has many OrderItems ──
    items = relationship("OrderItem", back_populates="order")


# ============================================================
# OrderItem: one row per cart line, with a snapshot of the
# customization and price at checkout time
# ============================================================
class OrderItem(Base):
    __tablename__ = "order_items"

    id                  = Column(Integer, primary_key=True, index=True)
    order_id            = Column(String, ForeignKey("orders.id"), nullable=False, index=True)
    product_id          = Column(String, nullable=False)
    name                = Column(String)
    customization_text  = Column(String)
    customization_color = Column(String)
    quantity            = Column(Integer, default=1)
    price               = Column(Float, nullable=False)

    order = relationship("Order", back_populates="items")
