import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    TIMESTAMP,
    Boolean,
    Column,
    Date,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from .database import Base


def utcnow() -> datetime.datetime:
    """Naive UTC timestamp, the form every TIMESTAMP column stores."""
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


# --- Enums ---
class UserRole(str, PyEnum):
    CUSTOMER = "CUSTOMER"
    PROPERTY_OWNER = "PROPERTY_OWNER"
    VEHICLE_OWNER = "VEHICLE_OWNER"
    TOUR_GUIDE = "TOUR_GUIDE"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


PROVIDER_ROLES = (UserRole.PROPERTY_OWNER, UserRole.VEHICLE_OWNER, UserRole.TOUR_GUIDE)
ADMIN_ROLES = (UserRole.ADMIN, UserRole.SUPER_ADMIN)


class ApprovalStatus(str, PyEnum):
    PENDING = "PENDING"
    UNDER_REVIEW = "UNDER_REVIEW"
    REQUIRES_CHANGES = "REQUIRES_CHANGES"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class BookingStatus(str, PyEnum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ServiceType(str, PyEnum):
    PROPERTY = "PROPERTY"
    VEHICLE = "VEHICLE"
    TOUR = "TOUR"


class TicketStatus(str, PyEnum):
    NEW = "NEW"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    WAITING = "WAITING"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


OPEN_TICKET_STATUSES = (
    TicketStatus.NEW,
    TicketStatus.ASSIGNED,
    TicketStatus.IN_PROGRESS,
    TicketStatus.WAITING,
)


class TicketPriority(str, PyEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class TicketCategory(str, PyEnum):
    ACCOUNT = "ACCOUNT"
    PAYMENT = "PAYMENT"
    BOOKING = "BOOKING"
    TECHNICAL = "TECHNICAL"
    LISTING = "LISTING"
    REVIEW_DISPUTE = "REVIEW_DISPUTE"
    POLICY = "POLICY"
    FEATURE_REQUEST = "FEATURE_REQUEST"
    OTHER = "OTHER"


class SenderType(str, PyEnum):
    ADMIN = "ADMIN"
    USER = "USER"
    SYSTEM = "SYSTEM"


# --- User Model ---
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(50), nullable=True)
    role = Column(SQLEnum(UserRole), default=UserRole.CUSTOMER, nullable=False, index=True)

    # Provider business details (owners and guides)
    business_name = Column(String(200), nullable=True)
    business_email = Column(String(255), nullable=True)

    verified = Column(Boolean, default=False, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    rejection_reason = Column(Text, nullable=True)

    created_at = Column(TIMESTAMP, default=utcnow, nullable=False)
    last_active_at = Column(TIMESTAMP, nullable=True)


# --- Listings ---
class ListingMixin:
    """Columns shared by every bookable offering."""

    id = Column(Integer, primary_key=True, index=True)
    description = Column(Text, nullable=False, default="")
    city = Column(String(120), index=True, nullable=False)

    approval_status = Column(
        SQLEnum(ApprovalStatus), default=ApprovalStatus.PENDING, nullable=False, index=True
    )
    available = Column(Boolean, default=True, nullable=False)
    is_featured = Column(Boolean, default=False, nullable=False)
    average_rating = Column(Float, default=0.0, nullable=False)

    rejection_reason = Column(Text, nullable=True)
    approved_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, default=utcnow, nullable=False, index=True)


class Property(ListingMixin, Base):
    __tablename__ = "properties"

    name = Column(String(200), nullable=False)
    type = Column(String(50), nullable=False, default="HOTEL")
    address = Column(String(255), nullable=True)
    base_price = Column(Float, nullable=False)

    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    approved_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    owner = relationship("User", foreign_keys=[owner_id], lazy="selectin")
    bookings = relationship("Booking", back_populates="property")
    reviews = relationship("Review", back_populates="property")

    @property
    def title(self) -> str:
        return self.name


class Vehicle(ListingMixin, Base):
    __tablename__ = "vehicles"

    brand = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    type = Column(String(50), nullable=False, default="CAR")
    base_price = Column(Float, nullable=False)

    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    approved_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    owner = relationship("User", foreign_keys=[owner_id], lazy="selectin")
    bookings = relationship("Booking", back_populates="vehicle")
    reviews = relationship("Review", back_populates="vehicle")

    @property
    def title(self) -> str:
        return f"{self.brand} {self.model}"


class Tour(ListingMixin, Base):
    __tablename__ = "tours"

    title = Column(String(200), nullable=False)
    category = Column(String(50), nullable=False, default="CULTURAL")
    price_per_person = Column(Float, nullable=False)

    guide_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    approved_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    guide = relationship("User", foreign_keys=[guide_id], lazy="selectin")
    bookings = relationship("Booking", back_populates="tour")
    reviews = relationship("Review", back_populates="tour")


# --- Bookings (single table, one subclass per listing kind) ---
class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    booking_type = Column(String(20), nullable=False, index=True)

    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(SQLEnum(BookingStatus), default=BookingStatus.PENDING, nullable=False, index=True)
    total_price = Column(Float, nullable=False, default=0.0)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    guests = Column(Integer, nullable=False, default=1)

    cancellation_reason = Column(Text, nullable=True)
    confirmed_at = Column(TIMESTAMP, nullable=True)
    cancelled_at = Column(TIMESTAMP, nullable=True)
    completed_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, default=utcnow, nullable=False, index=True)

    # Exactly one of these is set, matching booking_type
    property_id = Column(Integer, ForeignKey("properties.id"), nullable=True, index=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=True, index=True)
    tour_id = Column(Integer, ForeignKey("tours.id"), nullable=True, index=True)

    @property
    def listing(self):
        # booking_type doubles as the name of the listing relationship
        return getattr(self, self.booking_type, None)

    customer = relationship("User", lazy="selectin")
    property = relationship("Property", back_populates="bookings", lazy="selectin")
    vehicle = relationship("Vehicle", back_populates="bookings", lazy="selectin")
    tour = relationship("Tour", back_populates="bookings", lazy="selectin")

    __mapper_args__ = {
        "polymorphic_on": booking_type,
        "polymorphic_identity": "booking",
    }


class PropertyBooking(Booking):
    __mapper_args__ = {"polymorphic_identity": "property"}


class VehicleBooking(Booking):
    __mapper_args__ = {"polymorphic_identity": "vehicle"}


class TourBooking(Booking):
    __mapper_args__ = {"polymorphic_identity": "tour"}


# --- Reviews ---
class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    service_type = Column(SQLEnum(ServiceType), nullable=False, index=True)

    property_id = Column(Integer, ForeignKey("properties.id"), nullable=True, index=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=True, index=True)
    tour_id = Column(Integer, ForeignKey("tours.id"), nullable=True, index=True)

    rating = Column(Integer, nullable=False)
    content = Column(Text, nullable=False)
    response = Column(Text, nullable=True)

    # Moderation flags
    is_hidden = Column(Boolean, default=False, nullable=False)
    is_flagged = Column(Boolean, default=False, nullable=False)
    is_featured = Column(Boolean, default=False, nullable=False)

    hidden_reason = Column(Text, nullable=True)
    hidden_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    hidden_at = Column(TIMESTAMP, nullable=True)
    edited_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    edited_at = Column(TIMESTAMP, nullable=True)
    featured_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    featured_at = Column(TIMESTAMP, nullable=True)

    created_at = Column(TIMESTAMP, default=utcnow, nullable=False, index=True)

    @property
    def listing(self):
        return getattr(self, self.service_type.value.lower(), None)

    user = relationship("User", foreign_keys=[user_id], lazy="selectin")
    property = relationship("Property", back_populates="reviews", lazy="selectin")
    vehicle = relationship("Vehicle", back_populates="reviews", lazy="selectin")
    tour = relationship("Tour", back_populates="reviews", lazy="selectin")


# --- Support ---
class SupportTicket(Base):
    __tablename__ = "support_tickets"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    subject = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(SQLEnum(TicketStatus), default=TicketStatus.NEW, nullable=False, index=True)
    priority = Column(SQLEnum(TicketPriority), default=TicketPriority.MEDIUM, nullable=False, index=True)
    category = Column(SQLEnum(TicketCategory), default=TicketCategory.OTHER, nullable=False, index=True)

    assigned_to_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    assigned_at = Column(TIMESTAMP, nullable=True)

    is_escalated = Column(Boolean, default=False, nullable=False)
    escalated_at = Column(TIMESTAMP, nullable=True)
    escalation_reason = Column(Text, nullable=True)

    satisfaction_rating = Column(Integer, nullable=True)
    resolved_at = Column(TIMESTAMP, nullable=True)
    closed_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, default=utcnow, nullable=False, index=True)

    user = relationship("User", foreign_keys=[user_id], lazy="selectin")
    assigned_to = relationship("User", foreign_keys=[assigned_to_id], lazy="selectin")
    messages = relationship(
        "SupportMessage", back_populates="ticket", order_by="SupportMessage.id"
    )


class SupportMessage(Base):
    __tablename__ = "support_messages"

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(Integer, ForeignKey("support_tickets.id"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    sender_type = Column(SQLEnum(SenderType), nullable=False)
    content = Column(Text, nullable=False)
    is_internal = Column(Boolean, default=False, nullable=False)
    created_at = Column(TIMESTAMP, default=utcnow, nullable=False)

    ticket = relationship("SupportTicket", back_populates="messages")
    sender = relationship("User", lazy="selectin")


# --- Audit ---
class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    actor_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    action = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    resource_type = Column(String(50), nullable=False)
    resource_id = Column(Integer, nullable=True)
    ip_address = Column(String(64), nullable=False, default="unknown")
    user_agent = Column(String(255), nullable=False, default="unknown")
    created_at = Column(TIMESTAMP, default=utcnow, nullable=False, index=True)

    actor = relationship("User", lazy="selectin")

    __table_args__ = (
        Index("ix_audit_logs_resource", "resource_type", "resource_id"),
    )
