"""
HTTP tests for the retention, scheduler and auth routers.

The database dependency is overridden with the per-test SQLite session.
"""
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.auth import hash_password, require_admin, require_staff
from app.database import get_db
from app.models.db_models import (
    MemberRetentionRiskDB, PaymentStatus, RetentionTaskHistoryDB, UserRole,
)
from app.routers.scheduler import INTERNAL_API_KEY


@pytest.fixture
def staff_user(make_user):
    return make_user(role=UserRole.STAFF, email="staff@fitclub.com")


@pytest.fixture
def admin_user(make_user):
    return make_user(role=UserRole.ADMIN, email="admin@fitclub.com")


@pytest.fixture
def client(db, staff_user, admin_user):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[require_staff] = lambda: staff_user
    app.dependency_overrides[require_admin] = lambda: admin_user
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# =============================================================================
# READ ENDPOINTS
# =============================================================================

class TestReadEndpoints:

    def test_overview(self, client, make_member, make_risk):
        make_risk(make_member())

        response = client.get("/retention/overview")

        assert response.status_code == 200
        assert response.json()["evaluated_members"] == 1

    def test_members_list(self, client, make_member, make_risk):
        member = make_member(first_name="Jordan", last_name="Smith")
        make_risk(member, score=75, reasons=["NO_CHECKIN_HISTORY"])

        response = client.get("/retention/members", params={"risk_level": "HIGH"})

        body = response.json()
        assert response.status_code == 200
        assert body["total"] == 1
        assert body["data"][0]["full_name"] == "Jordan Smith"
        assert body["data"][0]["reasons"] == ["NO_CHECKIN_HISTORY"]

    def test_members_limit_is_bounded(self, client):
        response = client.get("/retention/members", params={"limit": 500})

        assert response.status_code == 422

    def test_member_detail_not_found(self, client):
        response = client.get("/retention/members/missing")

        assert response.status_code == 404

    def test_tasks_list(self, client, make_member, make_task):
        make_task(make_member())

        response = client.get("/retention/tasks", params={"status": "OPEN"})

        assert response.status_code == 200
        assert response.json()["total"] == 1

    def test_task_history_not_found(self, client):
        response = client.get("/retention/tasks/missing/history")

        assert response.status_code == 404


# =============================================================================
# MUTATING ENDPOINTS
# =============================================================================

class TestUpdateEndpoints:

    def test_update_task(self, client, db, staff_user, make_member, make_task):
        task = make_task(make_member(), priority=1)

        response = client.patch(
            f"/retention/tasks/{task.id}",
            json={"priority": 2, "note": "Left a voicemail"},
        )

        body = response.json()
        assert response.status_code == 200
        assert body["priority"] == 2
        assert body["note"] == "Left a voicemail"
        entry = db.query(RetentionTaskHistoryDB).filter_by(task_id=task.id).one()
        assert entry.changed_by_user_id == staff_user.id

    def test_update_task_done(self, client, make_member, make_task):
        task = make_task(make_member())

        response = client.patch(f"/retention/tasks/{task.id}", json={"status": "DONE"})

        assert response.status_code == 200
        assert response.json()["status"] == "DONE"
        assert response.json()["resolved_at"] is not None

    def test_update_unknown_task(self, client):
        response = client.patch("/retention/tasks/missing", json={"priority": 2})

        assert response.status_code == 404

    def test_update_invalid_assignee(self, client, make_user, make_member, make_task):
        trainer = make_user(role=UserRole.TRAINER)
        task = make_task(make_member())

        response = client.patch(f"/retention/tasks/{task.id}", json={"assigned_to_id": trainer.id})

        assert response.status_code == 404

    def test_update_rejects_bad_priority(self, client, make_member, make_task):
        task = make_task(make_member())

        response = client.patch(f"/retention/tasks/{task.id}", json={"priority": 9})

        assert response.status_code == 422

    def test_bulk_update(self, client, make_member, make_task):
        member = make_member()
        first = make_task(member)
        second = make_task(member)

        response = client.patch(
            "/retention/tasks/bulk",
            json={"task_ids": [first.id, second.id], "status": "IN_PROGRESS"},
        )

        assert response.status_code == 200
        assert response.json() == {"updated_count": 2}

    def test_bulk_update_without_fields(self, client, make_member, make_task):
        task = make_task(make_member())

        response = client.patch("/retention/tasks/bulk", json={"task_ids": [task.id]})

        assert response.status_code == 400

    def test_bulk_update_requires_ids(self, client):
        response = client.patch("/retention/tasks/bulk", json={"task_ids": [], "priority": 2})

        assert response.status_code == 422

    def test_recalculate(self, client, db, make_member, add_payment):
        member = make_member()
        add_payment(member, status=PaymentStatus.PENDING)

        response = client.post("/retention/recalculate")

        assert response.status_code == 201
        assert response.json() == {"processed": 1, "high": 1, "medium": 0, "low": 0}
        assert db.query(MemberRetentionRiskDB).count() == 1


# =============================================================================
# SCHEDULER
# =============================================================================

class TestSchedulerEndpoint:

    def test_rejects_wrong_key(self, client):
        response = client.post("/internal/retention-recompute", headers={"X-Internal-Key": "nope"})

        assert response.status_code == 403

    def test_requires_key(self, client):
        response = client.post("/internal/retention-recompute")

        assert response.status_code == 422

    def test_runs_recompute(self, client, make_member, add_check_in, now):
        member = make_member()
        add_check_in(member, now - timedelta(days=60))

        response = client.post(
            "/internal/retention-recompute", headers={"X-Internal-Key": INTERNAL_API_KEY},
        )

        body = response.json()
        assert response.status_code == 200
        assert body["status"] == "success"
        assert body["processed"] == 1


# =============================================================================
# AUTH
# =============================================================================

class TestAuth:

    def test_login_and_me(self, client, db, staff_user):
        staff_user.password_hash = hash_password("correct-horse")
        db.flush()

        login = client.post(
            "/auth/login", json={"email": "staff@fitclub.com", "password": "correct-horse"},
        )
        assert login.status_code == 200
        token = login.json()["access_token"]

        me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert me.status_code == 200
        assert me.json()["email"] == "staff@fitclub.com"
        assert me.json()["role"] == "STAFF"

    def test_login_wrong_password(self, client, db, staff_user):
        staff_user.password_hash = hash_password("correct-horse")
        db.flush()

        response = client.post(
            "/auth/login", json={"email": "staff@fitclub.com", "password": "wrong"},
        )

        assert response.status_code == 401

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"
