"""001 – Initial schema: employees, schedules, holidays, leave tables, enums.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000+00:00
"""

from alembic import op
import sqlalchemy as sa

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ENUM_TYPES: list[tuple[str, list[str]]] = [
    (
        "leave_status",
        [
            "PENDING_MANAGER",
            "PENDING_ADMIN",
            "APPROVED_BY_MANAGER",
            "APPROVED_BY_ADMIN",
            "DENIED",
            "CANCELLED",
            "CANCELLATION_PENDING_MANAGER",
            "CANCELLATION_PENDING_ADMIN",
        ],
    ),
    ("leave_unit", ["DAYS", "HOURS"]),
    ("leave_cadence", ["ANNUAL", "MONTHLY"]),
    ("holiday_type", ["NATIONAL", "COMPANY", "TEAM", "EMPLOYEE"]),
]


def _create_enum(name: str, values: list[str]) -> None:
    vals = ", ".join(f"'{v}'" for v in values)
    op.execute(sa.text(f"CREATE TYPE {name} AS ENUM ({vals})"))


def _drop_enum(name: str) -> None:
    op.execute(sa.text(f"DROP TYPE IF EXISTS {name}"))


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── Enum types ────────────────────────────────────────────────────────
    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. work_schedules ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE work_schedules (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name        VARCHAR(100) NOT NULL,
            monday      BOOLEAN NOT NULL DEFAULT TRUE,
            tuesday     BOOLEAN NOT NULL DEFAULT TRUE,
            wednesday   BOOLEAN NOT NULL DEFAULT TRUE,
            thursday    BOOLEAN NOT NULL DEFAULT TRUE,
            friday      BOOLEAN NOT NULL DEFAULT TRUE,
            saturday    BOOLEAN NOT NULL DEFAULT FALSE,
            sunday      BOOLEAN NOT NULL DEFAULT FALSE,
            start_time  TIME NOT NULL,
            end_time    TIME NOT NULL,
            is_default  BOOLEAN NOT NULL DEFAULT FALSE,
            created_at  TIMESTAMPTZ DEFAULT NOW(),
            updated_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    # At most one default schedule
    op.execute("""
        CREATE UNIQUE INDEX uq_work_schedules_single_default
            ON work_schedules(is_default) WHERE is_default
    """)

    # ── 2. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            first_name        VARCHAR(100) NOT NULL,
            last_name         VARCHAR(100) NOT NULL,
            email             VARCHAR(255) NOT NULL UNIQUE,
            position          VARCHAR(150),
            start_date        DATE NOT NULL,
            manager_id        UUID REFERENCES employees(id),
            work_schedule_id  UUID REFERENCES work_schedules(id),
            is_active         BOOLEAN NOT NULL DEFAULT TRUE,
            created_at        TIMESTAMPTZ DEFAULT NOW(),
            updated_at        TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_employees_manager ON employees(manager_id)")

    # ── 3. holidays ───────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE holidays (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name           VARCHAR(200) NOT NULL,
            start_date     DATE NOT NULL,
            end_date       DATE NOT NULL,
            type           holiday_type NOT NULL,
            employee_id    UUID REFERENCES employees(id),
            repeat_weekly  BOOLEAN NOT NULL DEFAULT FALSE,
            is_locked      BOOLEAN NOT NULL DEFAULT FALSE,
            created_by_id  UUID REFERENCES employees(id),
            created_at     TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_holidays_date_range CHECK (end_date >= start_date)
        )
    """)
    op.execute("CREATE INDEX ix_holidays_range ON holidays(start_date, end_date)")

    # ── 4. leave_types ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_types (
            id                 UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name               VARCHAR(100) NOT NULL UNIQUE,
            default_allowance  NUMERIC(6,2) NOT NULL,
            unit               leave_unit NOT NULL DEFAULT 'DAYS',
            cadence            leave_cadence NOT NULL DEFAULT 'ANNUAL',
            created_at         TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 5. leave_balances ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_balances (
            id                  UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id         UUID NOT NULL REFERENCES employees(id),
            leave_type_id       UUID NOT NULL REFERENCES leave_types(id),
            year                INTEGER NOT NULL,
            month               INTEGER,
            total               NUMERIC(6,2) NOT NULL,
            remaining           NUMERIC(6,2) NOT NULL,
            is_manual_override  BOOLEAN NOT NULL DEFAULT FALSE,
            is_locked           BOOLEAN NOT NULL DEFAULT FALSE,
            updated_at          TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    # month is NULL for ANNUAL types
    op.execute("""
        CREATE UNIQUE INDEX uq_leave_balance_period
            ON leave_balances(employee_id, leave_type_id, year, coalesce(month, 0))
    """)

    # ── 6. leave_requests ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id                          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id                 UUID NOT NULL REFERENCES employees(id),
            leave_type_id               UUID NOT NULL REFERENCES leave_types(id),
            start_date                  DATE NOT NULL,
            end_date                    DATE NOT NULL,
            requested_days              INTEGER NOT NULL,
            status                      leave_status NOT NULL,
            skip_reason                 TEXT,
            approved_by_id              UUID REFERENCES employees(id),
            approved_at                 TIMESTAMPTZ,
            denied_by_id                UUID REFERENCES employees(id),
            denied_at                   TIMESTAMPTZ,
            denial_reason               TEXT,
            cancelled_by_id             UUID REFERENCES employees(id),
            cancelled_at                TIMESTAMPTZ,
            cancellation_reason         TEXT,
            status_before_cancellation  leave_status,
            created_at                  TIMESTAMPTZ DEFAULT NOW(),
            updated_at                  TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_leave_requests_date_range CHECK (end_date >= start_date)
        )
    """)
    op.execute("""
        CREATE INDEX ix_leave_requests_employee_status
            ON leave_requests(employee_id, status)
    """)

    # ── 7. leave_request_audits (append-only) ─────────────────────────────
    op.execute("""
        CREATE TABLE leave_request_audits (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            leave_request_id  UUID NOT NULL REFERENCES leave_requests(id),
            changed_by_id     UUID NOT NULL REFERENCES employees(id),
            previous_status   leave_status NOT NULL,
            new_status        leave_status NOT NULL,
            reason            TEXT,
            created_at        TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX ix_leave_request_audits_request
            ON leave_request_audits(leave_request_id, created_at)
    """)


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "leave_request_audits",
        "leave_requests",
        "leave_balances",
        "leave_types",
        "holidays",
        "employees",
        "work_schedules",
    ]
    for t in tables:
        op.execute(sa.text(f"DROP TABLE IF EXISTS {t} CASCADE"))

    # Drop enum types
    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)

    op.execute('DROP EXTENSION IF EXISTS "uuid-ossp"')
