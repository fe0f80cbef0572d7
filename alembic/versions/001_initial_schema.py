"""initial schema - baseline for the visitor parking tables

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-18

For EXISTING databases (created by app startup): run `alembic stamp 001_initial`.
For NEW databases: run `alembic upgrade head` (creates all tables from models).
"""
from typing import Sequence, Union

from alembic import op

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users, buildings, units, vehicles, passes, violations, audit
    and notification tables from the SQLAlchemy models (checkfirst)."""
    from app.models import Base

    Base.metadata.create_all(bind=op.get_bind(), checkfirst=True)


def downgrade() -> None:
    """Drop all tables. DESTRUCTIVE, dev/test only."""
    from app.models import Base

    Base.metadata.drop_all(bind=op.get_bind())
