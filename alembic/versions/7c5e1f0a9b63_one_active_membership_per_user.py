"""one_active_membership_per_user

Revision ID: 7c5e1f0a9b63
Revises: 3a1c9e2b7d40
Create Date: 2026-10-19 14:03:51.402977

Duplicate active rows left by earlier concurrent activations are expired
(newest row wins) before the unique index is created.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '7c5e1f0a9b63'
down_revision: Union[str, None] = '3a1c9e2b7d40'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

INDEX_NAME = 'one_active_membership_per_user'


def index_exists(table_name: str, index_name: str) -> bool:
    """Check if an index exists on a table."""
    bind = op.get_bind()
    inspector = inspect(bind)
    return any(ix['name'] == index_name for ix in inspector.get_indexes(table_name))


def upgrade() -> None:
    if index_exists('user_memberships', INDEX_NAME):
        return

    op.execute(sa.text(
        "UPDATE user_memberships SET status = 'expired' "
        "WHERE status = 'active' AND id NOT IN ("
        "  SELECT MAX(id) FROM user_memberships WHERE status = 'active' GROUP BY user_id"
        ")"
    ))
    op.create_index(
        INDEX_NAME, 'user_memberships', ['user_id'], unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )


def downgrade() -> None:
    op.drop_index(INDEX_NAME, table_name='user_memberships')
