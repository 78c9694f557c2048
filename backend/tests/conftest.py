"""
Shared fixtures for retention engine tests.

Every test gets a fresh in-memory SQLite database. SAVEPOINT support is
enabled through the pysqlite BEGIN workaround so that notification
writes behave the same way they do on PostgreSQL.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base
from app.models.db_models import (
    UserDB, MemberDB, SubscriptionDB, AttendanceDB, PaymentDB,
    RetentionTaskDB, MemberRetentionRiskDB,
    UserRole, UserStatus, SubscriptionStatus, PaymentStatus,
    RetentionTaskStatus, RetentionRiskLevel,
)


NOW = datetime(2025, 3, 15, 12, 0, 0)


# =============================================================================
# DATABASE
# =============================================================================

@pytest.fixture
def engine():
    """Fresh in-memory database with all tables."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    """Session bound to the test database."""
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def now():
    return NOW


# =============================================================================
# FACTORIES
# =============================================================================

@pytest.fixture
def make_user(db):
    """Create a user. Defaults to an ACTIVE STAFF account."""
    def _make_user(
        role=UserRole.STAFF,
        status=UserStatus.ACTIVE,
        created_at=None,
        email=None,
        first_name="Sam",
        last_name="Staff",
        user_id=None,
    ):
        user = UserDB(
            id=user_id or str(uuid4()),
            email=email or f"{uuid4().hex[:10]}@gym.example",
            first_name=first_name,
            last_name=last_name,
            role=role,
            status=status,
            created_at=created_at or NOW - timedelta(days=365),
        )
        db.add(user)
        db.flush()
        return user
    return _make_user


@pytest.fixture
def make_member(db, make_user):
    """Create a member with its MEMBER user account."""
    def _make_member(
        first_name="Alex",
        last_name="Member",
        email=None,
        status=UserStatus.ACTIVE,
        member_id=None,
    ):
        user = make_user(
            role=UserRole.MEMBER,
            status=status,
            email=email,
            first_name=first_name,
            last_name=last_name,
        )
        member = MemberDB(id=member_id or str(uuid4()), user_id=user.id)
        db.add(member)
        db.flush()
        return member
    return _make_member


@pytest.fixture
def add_check_in(db):
    def _add_check_in(member, at):
        row = AttendanceDB(id=str(uuid4()), member_id=member.id, check_in_time=at)
        db.add(row)
        db.flush()
        return row
    return _add_check_in


@pytest.fixture
def add_subscription(db):
    def _add_subscription(member, end_date, status=SubscriptionStatus.ACTIVE, plan_name="Monthly"):
        row = SubscriptionDB(
            id=str(uuid4()),
            member_id=member.id,
            plan_name=plan_name,
            status=status,
            start_date=end_date - timedelta(days=30),
            end_date=end_date,
        )
        db.add(row)
        db.flush()
        return row
    return _add_subscription


@pytest.fixture
def add_payment(db):
    def _add_payment(member, status=PaymentStatus.PENDING, created_at=None, amount=49.0):
        row = PaymentDB(
            id=str(uuid4()),
            member_id=member.id,
            amount=amount,
            status=status,
            created_at=created_at or NOW,
        )
        db.add(row)
        db.flush()
        return row
    return _add_payment


@pytest.fixture
def make_task(db):
    """Create a retention task directly, bypassing the dispatcher."""
    def _make_task(
        member,
        status=RetentionTaskStatus.OPEN,
        assigned_to=None,
        priority=1,
        title="Follow up high-risk member",
        note=None,
        due_date=None,
        resolved_at=None,
        created_at=None,
        updated_at=None,
    ):
        task = RetentionTaskDB(
            id=str(uuid4()),
            member_id=member.id,
            assigned_to_id=assigned_to.id if assigned_to else None,
            status=status,
            priority=priority,
            title=title,
            note=note,
            due_date=due_date,
            resolved_at=resolved_at,
            created_at=created_at or NOW - timedelta(days=1),
            updated_at=updated_at or created_at or NOW - timedelta(days=1),
        )
        db.add(task)
        db.flush()
        return task
    return _make_task


@pytest.fixture
def make_risk(db):
    """Persist a risk row for a member."""
    def _make_risk(member, risk_level=RetentionRiskLevel.HIGH, score=70, reasons=None, updated_at=None):
        risk = MemberRetentionRiskDB(
            id=str(uuid4()),
            member_id=member.id,
            risk_level=risk_level,
            score=score,
            reasons=reasons or [],
            unpaid_pending_count=0,
            last_evaluated_at=NOW,
            updated_at=updated_at or NOW,
        )
        db.add(risk)
        db.flush()
        return risk
    return _make_risk
