"""002: create users table

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE users (
            id              UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            first_name      VARCHAR(100)    NOT NULL,
            last_name       VARCHAR(100),
            email           VARCHAR(150)    NOT NULL,
            mobile_no       VARCHAR(15),
            password_hash   VARCHAR(255)    NOT NULL,
            status          SMALLINT        NOT NULL DEFAULT 1,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            deleted_at      TIMESTAMPTZ,
            CONSTRAINT uq_users_email       UNIQUE (email),
            CONSTRAINT uq_users_mobile_no   UNIQUE (mobile_no),
            CONSTRAINT ck_users_status      CHECK (status IN (0, 1)),
            CONSTRAINT ck_users_mobile_len  CHECK (mobile_no IS NULL OR LENGTH(mobile_no) >= 8)
        );
    """)
    # List query: live rows, newest first
    op.execute("""
        CREATE INDEX idx_users_live_created
            ON users (created_at DESC, id DESC)
            WHERE deleted_at IS NULL;
    """)
    op.execute("""
        CREATE TRIGGER trg_users_updated_at
            BEFORE UPDATE ON users
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)
    op.execute("COMMENT ON TABLE users IS 'Users, soft-deleted via deleted_at';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS users CASCADE;")
