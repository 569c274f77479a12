from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Enum, Index, UniqueConstraint

from market_service.db import db


class UserRole(PyEnum):
    BUYER = "buyer"
    ARTISAN = "artisan"


# Participant model tags exposed to clients
PARTICIPANT_MODELS = {
    UserRole.BUYER: "BuyerUser",
    UserRole.ARTISAN: "ArtisanUser",
}


class OrderStatus(PyEnum):
    OPEN = "open"
    APPROVED = "approved"
    PROCESSING = "processing"
    COMPLETED = "completed"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


# Statuses counted as realised sales
SOLD_STATUSES = (OrderStatus.COMPLETED, OrderStatus.DELIVERED)


class User(db.Model):
    """Buyer or artisan account, owned by the auth/profile services.

    Only the fields the order and chat flows read are kept here.
    """

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(200), unique=True, nullable=True)
    role = db.Column(Enum(UserRole, name="user_role"), nullable=False, index=True)

    # Artisan profile location (address.coords)
    lat = db.Column(db.Float, nullable=True)
    lng = db.Column(db.Float, nullable=True)

    revenue = db.Column(db.Float, nullable=False, default=0.0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @property
    def location(self):
        if self.lat is None or self.lng is None:
            return None
        return {"lat": self.lat, "lng": self.lng}

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User id={self.id} role={self.role.value}>"


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True)
    artisan_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    price_per_kg = db.Column(db.Float, nullable=False)
    unit = db.Column(db.String(20), nullable=False, default="kg")
    average_rating = db.Column(db.Float, nullable=False, default=0.0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    artisan = db.relationship("User", lazy=True)


class Order(db.Model):
    """Direct order: one buyer, one product."""

    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    buyer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    # Price per unit when the order was placed
    unit_price = db.Column(db.Float, nullable=False)

    status = db.Column(
        Enum(OrderStatus, name="order_status"),
        nullable=False,
        default=OrderStatus.OPEN,
    )
    delivery_date = db.Column(db.DateTime, nullable=True)

    # Snapshot of the artisan's coordinates, set on approval
    artisan_lat = db.Column(db.Float, nullable=True)
    artisan_lng = db.Column(db.Float, nullable=True)

    cancellation_message = db.Column(db.Text, nullable=True)

    version = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    product = db.relationship("Product", lazy=True)
    buyer = db.relationship("User", lazy=True)

    __table_args__ = (
        Index("ix_order_status_updated", "status", "updated_at"),
    )
    __mapper_args__ = {"version_id_col": version}

    @property
    def artisan_approved(self) -> bool:
        return self.status in (
            OrderStatus.APPROVED,
            OrderStatus.PROCESSING,
            OrderStatus.COMPLETED,
            OrderStatus.DELIVERED,
        )

    @property
    def artisan_location(self):
        if self.artisan_lat is None or self.artisan_lng is None:
            return None
        return {"lat": self.artisan_lat, "lng": self.artisan_lng}


class Conversation(db.Model):
    """Two-party thread, one per buyer/artisan pair."""

    __tablename__ = "conversations"

    id = db.Column(db.Integer, primary_key=True)
    # "<low id>:<high id>", unique per unordered pair
    pair_key = db.Column(db.String(64), unique=True, nullable=False)
    last_message_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    participants = db.relationship(
        "ConversationParticipant",
        back_populates="conversation",
        order_by="ConversationParticipant.position",
        lazy=True,
        cascade="all, delete-orphan",
    )

    def participant(self, user_id: int):
        for p in self.participants:
            if p.user_id == user_id:
                return p
        return None


class ConversationParticipant(db.Model):
    __tablename__ = "conversation_participants"

    id = db.Column(db.Integer, primary_key=True)
    conversation_id = db.Column(db.Integer, db.ForeignKey("conversations.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    role = db.Column(Enum(UserRole, name="participant_role"), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)
    # Last message this participant has seen; None means behind
    last_read_message_id = db.Column(db.Integer, nullable=True)

    conversation = db.relationship("Conversation", back_populates="participants")
    user = db.relationship("User", lazy=True)

    __table_args__ = (
        UniqueConstraint("conversation_id", "user_id", name="uq_conversation_participant"),
    )

    @property
    def participant_model(self) -> str:
        return PARTICIPANT_MODELS[self.role]


class Message(db.Model):
    __tablename__ = "messages"

    id = db.Column(db.Integer, primary_key=True)
    conversation_id = db.Column(db.Integer, db.ForeignKey("conversations.id"), nullable=False, index=True)
    sender_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    sender_role = db.Column(Enum(UserRole, name="sender_role"), nullable=False)
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    sender = db.relationship("User", lazy=True)

    @property
    def sender_model(self) -> str:
        return PARTICIPANT_MODELS[self.sender_role]


__all__ = [
    "db",
    "User",
    "UserRole",
    "Product",
    "Order",
    "OrderStatus",
    "Conversation",
    "ConversationParticipant",
    "Message",
    "PARTICIPANT_MODELS",
    "SOLD_STATUSES",
]
