import uuid

from sqlalchemy import Column, Integer, Float, String, Boolean, DateTime, Text, ForeignKey, Numeric, JSON, UniqueConstraint
from sqlalchemy.orm import relationship

from tunibus.database import Base, utcnow


def new_id() -> str:
    return str(uuid.uuid4())

# ================================
# Users & Accounts
# ================================
class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password = Column(String(255), nullable=False)
    first_name = Column(String(100))
    last_name = Column(String(100))
    phone = Column(String(50))
    address = Column(String(255))
    photo_url = Column(String(500))
    role = Column(String(20), nullable=False, default="CLIENT")
    status = Column(String(20), nullable=False, default="active")
    maintenance_until = Column(DateTime)
    maintenance_reason = Column(String(255))
    preferred_language = Column(String(10), default="fr")
    timezone = Column(String(50), default="Africa/Tunis")
    notify_email = Column(Boolean, default=True)
    notify_reservations = Column(Boolean, default=True)
    notify_alerts = Column(Boolean, default=True)
    payment_methods = Column(JSON, default=list)
    deletion_requested_at = Column(DateTime)
    mfa_secret = Column(String(64))
    mfa_enabled = Column(Boolean, default=False)
    last_login = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    reservations = relationship("Reservation", back_populates="client", foreign_keys="Reservation.client_id",
                                cascade="all, delete-orphan")
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p) or self.email

class UserActivity(Base):
    __tablename__ = "user_activities"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    action = Column(String(50), nullable=False)
    details = Column(JSON)
    created_at = Column(DateTime, default=utcnow)

class ProfileVersion(Base):
    __tablename__ = "profile_versions"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    snapshot = Column(JSON, nullable=False)
    created_at = Column(DateTime, default=utcnow)

# ================================
# Fleet & Trips
# ================================
class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(String(36), primary_key=True, default=new_id)
    plate_number = Column(String(30), unique=True, nullable=False, index=True)
    make = Column(String(100))
    model = Column(String(100))
    capacity = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="available")
    driver_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"))
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    driver = relationship("User")
    trips = relationship("Trip", back_populates="vehicle")

class Trip(Base):
    __tablename__ = "trips"

    id = Column(String(36), primary_key=True, default=new_id)
    origin = Column(String(120), nullable=False, index=True)
    destination = Column(String(120), nullable=False, index=True)
    departure_at = Column(DateTime, nullable=False, index=True)
    arrival_at = Column(DateTime, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    seats_available = Column(Integer, nullable=False, default=0)
    distance_km = Column(Float)
    driver_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), index=True)
    vehicle_id = Column(String(36), ForeignKey("vehicles.id", ondelete="SET NULL"))
    status = Column(String(20), nullable=False, default="scheduled")
    workflow_status = Column(String(40))
    category = Column(String(20), default="other")
    notes = Column(Text)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    driver = relationship("User")
    vehicle = relationship("Vehicle", back_populates="trips")
    reservations = relationship("Reservation", back_populates="trip", cascade="all, delete-orphan")

class SearchLog(Base):
    __tablename__ = "search_logs"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), index=True)
    origin = Column(String(120))
    destination = Column(String(120))
    travel_date = Column(String(10))
    result_count = Column(Integer, default=0)
    source = Column(String(20), default="web")
    created_at = Column(DateTime, default=utcnow, index=True)

# ================================
# Reservations
# ================================
class Reservation(Base):
    __tablename__ = "reservations"

    id = Column(String(36), primary_key=True, default=new_id)
    reference = Column(String(12), unique=True, nullable=False, index=True)
    client_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    trip_id = Column(String(36), ForeignKey("trips.id", ondelete="CASCADE"), nullable=False, index=True)
    seat_count = Column(Integer, nullable=False, default=1)
    seat_number = Column(Integer)
    status = Column(String(20), nullable=False, default="pending_payment")
    total_amount = Column(Numeric(10, 2), nullable=False, default=0)
    booked_at = Column(DateTime, default=utcnow)
    paid_at = Column(DateTime)
    cancelled_at = Column(DateTime)
    checked_in = Column(Boolean, default=False)
    checked_in_at = Column(DateTime)
    checked_in_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"))

    # Relationships
    client = relationship("User", back_populates="reservations", foreign_keys=[client_id])
    trip = relationship("Trip", back_populates="reservations")

# ================================
# Loyalty
# ================================
class LoyaltyBalance(Base):
    __tablename__ = "loyalty_balances"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    balance = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

class LoyaltyTransaction(Base):
    __tablename__ = "loyalty_transactions"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(10), nullable=False)
    amount = Column(Integer, nullable=False)
    source = Column(String(20), nullable=False)
    details = Column(JSON)
    created_at = Column(DateTime, default=utcnow)

class LoyaltyMission(Base):
    __tablename__ = "loyalty_missions"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    points = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, default=True)
    ends_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)

class LoyaltyMissionProgress(Base):
    __tablename__ = "loyalty_mission_progress"
    __table_args__ = (UniqueConstraint("mission_id", "user_id"),)

    id = Column(String(36), primary_key=True, default=new_id)
    mission_id = Column(String(36), ForeignKey("loyalty_missions.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    progress = Column(Integer, nullable=False, default=0)
    completed = Column(Boolean, default=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

class RewardTier(Base):
    __tablename__ = "reward_tiers"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(50), nullable=False)
    min_points = Column(Integer, nullable=False, default=0)
    perks = Column(JSON, default=list)

class LoyaltyBadge(Base):
    __tablename__ = "loyalty_badges"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    code = Column(String(50), nullable=False)
    label = Column(String(200), nullable=False)
    awarded_at = Column(DateTime, default=utcnow)

# ================================
# Notifications
# ================================
class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    body = Column(Text)
    category = Column(String(30), default="general")
    priority = Column(String(10), default="normal")
    read = Column(Boolean, default=False)
    read_at = Column(DateTime)
    details = Column(JSON, default=dict)
    created_at = Column(DateTime, default=utcnow, index=True)

    # Relationships
    user = relationship("User", back_populates="notifications")

class NotificationPreference(Base):
    __tablename__ = "notification_preferences"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    channels = Column(JSON, default=lambda: {"email": True, "push": True, "sms": False})
    priority_threshold = Column(String(10), default="normal")
    quiet_mode = Column(Boolean, default=False)
    quiet_hours = Column(JSON)
    vacation_mode = Column(Boolean, default=False)
    vacation_delegate_user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"))
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

class NotificationDigest(Base):
    __tablename__ = "notification_digests"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    payload = Column(JSON, nullable=False)
    scheduled_for = Column(DateTime, nullable=False)
    delivered_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)

class NotificationEngagement(Base):
    __tablename__ = "notification_engagements"

    id = Column(String(36), primary_key=True, default=new_id)
    notification_id = Column(String(36), ForeignKey("notifications.id", ondelete="CASCADE"))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    event = Column(String(80), nullable=False)
    created_at = Column(DateTime, default=utcnow)

class NotificationDelegation(Base):
    __tablename__ = "notification_delegations"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    delegate_user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    starts_at = Column(DateTime, default=utcnow)
    ends_at = Column(DateTime)
    active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)

# ================================
# Support
# ================================
class SupportTicket(Base):
    __tablename__ = "support_tickets"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    subject = Column(String(200), nullable=False)
    status = Column(String(20), nullable=False, default="open")
    priority = Column(String(10), default="normal")
    channel = Column(String(20), default="web")
    assigned_agent_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"))
    satisfaction_score = Column(Integer)
    resolution_summary = Column(Text)
    resolved_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    messages = relationship("SupportMessage", back_populates="ticket", cascade="all, delete-orphan",
                            order_by="SupportMessage.created_at")

class SupportMessage(Base):
    __tablename__ = "support_messages"

    id = Column(String(36), primary_key=True, default=new_id)
    ticket_id = Column(String(36), ForeignKey("support_tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"))
    author_role = Column(String(10), nullable=False, default="user")
    body = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    ticket = relationship("SupportTicket", back_populates="messages")

class KnowledgeArticle(Base):
    __tablename__ = "knowledge_articles"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    tags = Column(JSON, default=list)
    helpful_count = Column(Integer, default=0)
    created_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"))
    created_at = Column(DateTime, default=utcnow)

# ================================
# Driver Incidents
# ================================
class Incident(Base):
    __tablename__ = "incidents"

    id = Column(String(36), primary_key=True, default=new_id)
    driver_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    trip_id = Column(String(36), ForeignKey("trips.id", ondelete="SET NULL"))
    incident_type = Column(String(20), nullable=False)
    description = Column(Text)
    severity = Column(String(10), nullable=False, default="minor")
    status = Column(String(20), nullable=False, default="open")
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

# ================================
# Resource Optimization
# ================================
class OptimizationRule(Base):
    __tablename__ = "optimization_rules"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(120), nullable=False)
    enabled = Column(Boolean, default=True)
    route_pattern = Column(String(200))
    threshold = Column(Float, default=1.2)
    auto_apply = Column(Boolean, default=False)
    min_rest_hours = Column(Integer, default=8)
    service_window = Column(String(11), default="05:00-23:00")
    details = Column(JSON, default=dict)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

class OptimizationRecommendation(Base):
    __tablename__ = "optimization_recommendations"

    id = Column(String(36), primary_key=True, default=new_id)
    route_from = Column(String(250), nullable=False)
    route_to = Column(String(250), nullable=False)
    recommended_start = Column(DateTime)
    narrative = Column(Text)
    reason = Column(Text)
    status = Column(String(20), nullable=False, default="pending", index=True)
    priority = Column(Integer, default=1)
    confidence = Column(Float)
    recommended_vehicle_id = Column(String(36), ForeignKey("vehicles.id", ondelete="SET NULL"))
    recommended_driver_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"))
    details = Column(JSON, default=dict)
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
