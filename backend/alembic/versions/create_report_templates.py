"""Create report_templates for saved custom reports

Revision ID: create_report_templates
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'create_report_templates'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create report_templates with a unique share id."""
    op.create_table(
        'report_templates',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('model', sa.String(length=50), nullable=False, server_default='workOrders'),
        sa.Column('fields', sa.JSON(), nullable=False),
        sa.Column('filters', sa.JSON(), nullable=False),
        sa.Column('group_by', sa.JSON(), nullable=False),
        sa.Column('calculations', sa.JSON(), nullable=False),
        sa.Column('date_range', sa.JSON(), nullable=True),
        sa.Column('visibility_scope', sa.String(length=7), nullable=False, server_default='private'),
        sa.Column('visibility_roles', sa.JSON(), nullable=False),
        sa.Column('share_id', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(
            ['organization_id'], ['organizations.id'],
            name='fk_report_templates_organization_id_organizations',
        ),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], name='fk_report_templates_owner_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_report_templates'),
    )
    op.create_index('ix_report_templates_organization_id', 'report_templates', ['organization_id'])
    op.create_index('ix_report_templates_owner_id', 'report_templates', ['owner_id'])
    op.create_index('ix_report_templates_share_id', 'report_templates', ['share_id'], unique=True)


def downgrade() -> None:
    """Drop report_templates."""
    op.drop_index('ix_report_templates_share_id', 'report_templates')
    op.drop_index('ix_report_templates_owner_id', 'report_templates')
    op.drop_index('ix_report_templates_organization_id', 'report_templates')
    op.drop_table('report_templates')
