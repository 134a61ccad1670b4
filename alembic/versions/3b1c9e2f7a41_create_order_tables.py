"""create order tables

Revision ID: 3b1c9e2f7a41
Revises: 
Create Date: 2026-10-19 09:12:07.418230

"""
from typing import Sequence, Union

from alembic import op
from orderdesk.database import Base
from orderdesk.models import user  # noqa: F401


# revision identifiers, used by Alembic.
revision: str = '3b1c9e2f7a41'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create user, design, party and transport tables with their unique constraints."""
    bind = op.get_bind()
    Base.metadata.create_all(bind)


def downgrade() -> None:
    """Drop every table created by this revision."""
    bind = op.get_bind()
    Base.metadata.drop_all(bind)
