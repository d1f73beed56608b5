"""scope ip_rate_limits so the auth and project API limiters count separately

Revision ID: b7e4c1d9a2f3
Revises: a1b2c3d4e5f6
Create Date: 2026-10-20 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b7e4c1d9a2f3'
down_revision = 'a1b2c3d4e5f6'
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table('ip_rate_limits', schema=None) as batch_op:
        batch_op.add_column(sa.Column('scope', sa.String(length=20), nullable=False, server_default='auth'))
        batch_op.drop_index(batch_op.f('ix_ip_rate_limits_ip'))
        batch_op.create_index(batch_op.f('ix_ip_rate_limits_ip'), ['ip'], unique=False)
        batch_op.create_unique_constraint('uq_ip_rate_limit_scope_ip', ['scope', 'ip'])


def downgrade():
    op.execute("DELETE FROM ip_rate_limits WHERE scope != 'auth'")
    with op.batch_alter_table('ip_rate_limits', schema=None) as batch_op:
        batch_op.drop_constraint('uq_ip_rate_limit_scope_ip', type_='unique')
        batch_op.drop_index(batch_op.f('ix_ip_rate_limits_ip'))
        batch_op.create_index(batch_op.f('ix_ip_rate_limits_ip'), ['ip'], unique=True)
        batch_op.drop_column('scope')
