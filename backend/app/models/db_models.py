"""
Retention Engine - SQLAlchemy ORM Models
PostgreSQL database models for persistent storage
"""
from datetime import datetime
from enum import Enum
from sqlalchemy import Column, String, Integer, Float, DateTime, Text, JSON, ForeignKey, Enum as SQLEnum, Boolean
from sqlalchemy.orm import relationship
from ..database import Base


# =============================================================================
# ENUMS
# =============================================================================

class UserRole(str, Enum):
    """Roles for gym back-office identities."""
    ADMIN = "ADMIN"
    STAFF = "STAFF"
    TRAINER = "TRAINER"
    MEMBER = "MEMBER"


class UserStatus(str, Enum):
    """Account status."""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


class SubscriptionStatus(str, Enum):
    """Membership subscription status."""
    ACTIVE = "ACTIVE"
    PENDING = "PENDING"
    FROZEN = "FROZEN"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, Enum):
    """Payment status."""
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    REFUNDED = "REFUNDED"


class RetentionRiskLevel(str, Enum):
    """Churn risk bands."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class RetentionTaskStatus(str, Enum):
    """
    Follow-up task status.

    Transitions are not enforced: any status may be written over any other.
    """
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"
    DISMISSED = "DISMISSED"


class NotificationType(str, Enum):
    """Severity of an in-app notification."""
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"
    IN_APP = "IN_APP"


ACTIVE_TASK_STATUSES = (RetentionTaskStatus.OPEN, RetentionTaskStatus.IN_PROGRESS)
RESOLVED_TASK_STATUSES = (RetentionTaskStatus.DONE, RetentionTaskStatus.DISMISSED)
ASSIGNABLE_ROLES = (UserRole.ADMIN, UserRole.STAFF)


# =============================================================================
# STORE MODELS (read by the retention engine)
# =============================================================================

class UserDB(Base):
    """Back-office identity: admins, staff, trainers and members."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)  # UUID
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=True)
    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.MEMBER)
    status = Column(SQLEnum(UserStatus), nullable=False, default=UserStatus.ACTIVE)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    member = relationship("MemberDB", back_populates="user", uselist=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class MemberDB(Base):
    """Gym member profile attached to a user account."""
    __tablename__ = "members"

    id = Column(String(36), primary_key=True)  # UUID
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    user = relationship("UserDB", back_populates="member")
    subscriptions = relationship("SubscriptionDB", back_populates="member", cascade="all, delete-orphan")
    attendance = relationship("AttendanceDB", back_populates="member", cascade="all, delete-orphan")
    payments = relationship("PaymentDB", back_populates="member", cascade="all, delete-orphan")
    retention_risk = relationship("MemberRetentionRiskDB", back_populates="member", uselist=False)
    retention_tasks = relationship("RetentionTaskDB", back_populates="member")


class SubscriptionDB(Base):
    """Membership subscription period."""
    __tablename__ = "subscriptions"

    id = Column(String(36), primary_key=True)  # UUID
    member_id = Column(String(36), ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True)
    plan_name = Column(String(100), nullable=True)
    status = Column(SQLEnum(SubscriptionStatus), nullable=False, default=SubscriptionStatus.ACTIVE)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    member = relationship("MemberDB", back_populates="subscriptions")


class AttendanceDB(Base):
    """Single gym check-in."""
    __tablename__ = "attendance"

    id = Column(String(36), primary_key=True)  # UUID
    member_id = Column(String(36), ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True)
    check_in_time = Column(DateTime, nullable=False, index=True)

    # Relationships
    member = relationship("MemberDB", back_populates="attendance")


class PaymentDB(Base):
    """Member payment record."""
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True)  # UUID
    member_id = Column(String(36), ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Float, nullable=False, default=0.0)
    status = Column(SQLEnum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    member = relationship("MemberDB", back_populates="payments")


# =============================================================================
# RETENTION ENGINE MODELS
# =============================================================================

class MemberRetentionRiskDB(Base):
    """
    Latest churn-risk snapshot for a member.
    One row per member, overwritten wholesale on every recompute.
    """
    __tablename__ = "member_retention_risks"

    id = Column(String(36), primary_key=True)  # UUID
    member_id = Column(String(36), ForeignKey("members.id", ondelete="CASCADE"), unique=True, nullable=False)

    risk_level = Column(SQLEnum(RetentionRiskLevel), nullable=False, index=True)
    score = Column(Integer, nullable=False, default=0)
    reasons = Column(JSON, nullable=False, default=list)  # Ordered reason codes

    # Signal values the score was computed from
    last_check_in_at = Column(DateTime, nullable=True)
    days_since_check_in = Column(Integer, nullable=True)
    subscription_ends_at = Column(DateTime, nullable=True)
    unpaid_pending_count = Column(Integer, nullable=False, default=0)

    last_evaluated_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    member = relationship("MemberDB", back_populates="retention_risk")


class RetentionTaskDB(Base):
    """
    Human follow-up action for a member.
    Created by the dispatcher or manually; never physically deleted.
    """
    __tablename__ = "retention_tasks"

    id = Column(String(36), primary_key=True)  # UUID
    member_id = Column(String(36), ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True)
    assigned_to_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    status = Column(SQLEnum(RetentionTaskStatus), nullable=False, default=RetentionTaskStatus.OPEN, index=True)
    priority = Column(Integer, nullable=False, default=1)  # Lower = more urgent
    title = Column(String(255), nullable=False)
    note = Column(Text, nullable=True)
    due_date = Column(DateTime, nullable=True)
    resolved_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    member = relationship("MemberDB", back_populates="retention_tasks")
    assigned_to = relationship("UserDB")
    history = relationship("RetentionTaskHistoryDB", back_populates="task", order_by="RetentionTaskHistoryDB.created_at")


class RetentionTaskHistoryDB(Base):
    """
    Append-only audit row for one task mutation.
    Every from/to pair is recorded, including unchanged fields.
    """
    __tablename__ = "retention_task_history"

    id = Column(String(36), primary_key=True)  # UUID
    task_id = Column(String(36), ForeignKey("retention_tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    changed_by_user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    from_status = Column(SQLEnum(RetentionTaskStatus), nullable=True)
    to_status = Column(SQLEnum(RetentionTaskStatus), nullable=True)
    from_priority = Column(Integer, nullable=True)
    to_priority = Column(Integer, nullable=True)
    from_assigned_to_id = Column(String(36), nullable=True)
    to_assigned_to_id = Column(String(36), nullable=True)
    from_note = Column(Text, nullable=True)
    to_note = Column(Text, nullable=True)
    from_due_date = Column(DateTime, nullable=True)
    to_due_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    task = relationship("RetentionTaskDB", back_populates="history")


class NotificationDB(Base):
    """In-app notification addressed to a role or a single user."""
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True)  # UUID
    role = Column(SQLEnum(UserRole), nullable=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)

    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(SQLEnum(NotificationType), nullable=False, default=NotificationType.IN_APP)
    action_url = Column(String(500), nullable=True)
    read = Column(Boolean, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)
