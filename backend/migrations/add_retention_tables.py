"""
Migration: Add retention tables.

Creates the enum types and 4 tables behind member retention:
1. member_retention_risks - One risk snapshot per member, overwritten on recompute
2. retention_tasks - Follow-up tasks for HIGH risk members
3. retention_task_history - Append-only audit of effective task changes
4. notifications - In-app notices for ADMIN / STAFF

Assumes users, members, subscriptions, attendance and payments already exist.
"""
from sqlalchemy import create_engine, text
import os

# Use same DB URL pattern as main app
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql://{os.getenv('USER', 'postgres')}@localhost:5432/retention_engine"
)

ENUM_TYPES = {
    "retentionrisklevel": ("LOW", "MEDIUM", "HIGH"),
    "retentiontaskstatus": ("OPEN", "IN_PROGRESS", "DONE", "DISMISSED"),
    "notificationtype": ("INFO", "SUCCESS", "WARNING", "ERROR", "IN_APP"),
}


def table_exists(conn, table_name: str) -> bool:
    """Check if a table exists in the database."""
    result = conn.execute(text("""
        SELECT EXISTS (
            SELECT FROM information_schema.tables
            WHERE table_name = :table_name
        )
    """), {"table_name": table_name})
    return result.fetchone()[0]


def type_exists(conn, type_name: str) -> bool:
    """Check if an enum type exists in the database."""
    result = conn.execute(text("""
        SELECT EXISTS (
            SELECT FROM pg_type WHERE typname = :type_name
        )
    """), {"type_name": type_name})
    return result.fetchone()[0]


def run_migration():
    """Create all retention tables."""
    engine = create_engine(DATABASE_URL)

    with engine.connect() as conn:
        for type_name, labels in ENUM_TYPES.items():
            if type_exists(conn, type_name):
                print(f"{type_name} type already exists")
                continue
            values = ", ".join(f"'{label}'" for label in labels)
            conn.execute(text(f"CREATE TYPE {type_name} AS ENUM ({values})"))
            print(f"Created {type_name} type")

        # =================================================================
        # TABLE 1: member_retention_risks
        # =================================================================
        if table_exists(conn, "member_retention_risks"):
            print("member_retention_risks table already exists")
        else:
            conn.execute(text("""
                CREATE TABLE member_retention_risks (
                    id VARCHAR(36) PRIMARY KEY,
                    member_id VARCHAR(36) NOT NULL UNIQUE REFERENCES members(id) ON DELETE CASCADE,
                    risk_level retentionrisklevel NOT NULL,
                    score INTEGER NOT NULL DEFAULT 0,
                    reasons JSON NOT NULL,
                    last_check_in_at TIMESTAMP,
                    days_since_check_in INTEGER,
                    subscription_ends_at TIMESTAMP,
                    unpaid_pending_count INTEGER NOT NULL DEFAULT 0,
                    last_evaluated_at TIMESTAMP NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """))
            conn.execute(text("""
                CREATE INDEX idx_retention_risk_level ON member_retention_risks(risk_level)
            """))
            print("Created member_retention_risks table")

        # =================================================================
        # TABLE 2: retention_tasks
        # =================================================================
        if table_exists(conn, "retention_tasks"):
            print("retention_tasks table already exists")
        else:
            conn.execute(text("""
                CREATE TABLE retention_tasks (
                    id VARCHAR(36) PRIMARY KEY,
                    member_id VARCHAR(36) NOT NULL REFERENCES members(id) ON DELETE CASCADE,
                    assigned_to_id VARCHAR(36) REFERENCES users(id) ON DELETE SET NULL,
                    status retentiontaskstatus NOT NULL DEFAULT 'OPEN',
                    priority INTEGER NOT NULL DEFAULT 1,
                    title VARCHAR(255) NOT NULL,
                    note TEXT,
                    due_date TIMESTAMP,
                    resolved_at TIMESTAMP,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """))
            conn.execute(text("""
                CREATE INDEX idx_retention_task_member ON retention_tasks(member_id)
            """))
            conn.execute(text("""
                CREATE INDEX idx_retention_task_assignee ON retention_tasks(assigned_to_id)
            """))
            conn.execute(text("""
                CREATE INDEX idx_retention_task_status ON retention_tasks(status)
            """))
            print("Created retention_tasks table")

        # =================================================================
        # TABLE 3: retention_task_history
        # =================================================================
        if table_exists(conn, "retention_task_history"):
            print("retention_task_history table already exists")
        else:
            conn.execute(text("""
                CREATE TABLE retention_task_history (
                    id VARCHAR(36) PRIMARY KEY,
                    task_id VARCHAR(36) NOT NULL REFERENCES retention_tasks(id) ON DELETE CASCADE,
                    changed_by_user_id VARCHAR(36) REFERENCES users(id) ON DELETE SET NULL,
                    from_status retentiontaskstatus,
                    to_status retentiontaskstatus,
                    from_priority INTEGER,
                    to_priority INTEGER,
                    from_assigned_to_id VARCHAR(36),
                    to_assigned_to_id VARCHAR(36),
                    from_note TEXT,
                    to_note TEXT,
                    from_due_date TIMESTAMP,
                    to_due_date TIMESTAMP,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """))
            conn.execute(text("""
                CREATE INDEX idx_retention_history_task ON retention_task_history(task_id)
            """))
            print("Created retention_task_history table")

        # =================================================================
        # TABLE 4: notifications
        # =================================================================
        if table_exists(conn, "notifications"):
            print("notifications table already exists")
        else:
            conn.execute(text("""
                CREATE TABLE notifications (
                    id VARCHAR(36) PRIMARY KEY,
                    role userrole,
                    user_id VARCHAR(36) REFERENCES users(id) ON DELETE CASCADE,
                    title VARCHAR(255) NOT NULL,
                    message TEXT NOT NULL,
                    type notificationtype NOT NULL DEFAULT 'IN_APP',
                    action_url VARCHAR(500),
                    read BOOLEAN DEFAULT FALSE,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """))
            conn.execute(text("""
                CREATE INDEX idx_notification_role ON notifications(role)
            """))
            conn.execute(text("""
                CREATE INDEX idx_notification_user ON notifications(user_id)
            """))
            print("Created notifications table")

        conn.commit()
        print("\nRetention migration completed successfully!")


if __name__ == "__main__":
    run_migration()
