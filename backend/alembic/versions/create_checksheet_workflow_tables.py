"""Create checksheet workflow tables

Key changes:
1. Creates `dirs` and `fis` - the two checksheet kinds, each with workflow status
   and a `submitted_at` review lock
2. Creates `checksheet_revisions` - append-only revision ledger, numbered per reference
3. Creates `checksheet_approvals` - append-only submit/resubmit/check/approve ledger

Revision ID: checksheet_workflow_001
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = 'checksheet_workflow_001'
down_revision = None
branch_labels = None
depends_on = None


def _checksheet_columns() -> list:
    """Workflow columns shared by dirs and fis"""
    return [
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('owner_id', sa.Uuid(), nullable=False, index=True),
        sa.Column(
            'status',
            postgresql.ENUM(name='checksheetstatus', create_type=False),
            nullable=False,
            server_default='pending',
        ),
        sa.Column('submitted_at', sa.DateTime, nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('deleted_at', sa.DateTime, nullable=True),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    postgresql.ENUM('pending', 'revision', 'checked', 'approved', name='checksheetstatus').create(bind, checkfirst=True)
    postgresql.ENUM('dir', 'fi', name='checksheetkind').create(bind, checkfirst=True)
    postgresql.ENUM('submitted', 'resubmitted', 'checked', 'approved', name='approvalevent').create(bind, checkfirst=True)

    op.create_table(
        'dirs',
        *_checksheet_columns(),
        sa.Column('id_dir', sa.String(50), nullable=False, unique=True),
        sa.Column('serial_number', sa.String(100), nullable=True, unique=True),
        sa.Column('recommendation', sa.Text, nullable=True),
        sa.Column('general_note', sa.Text, nullable=True),
        # Master-data references live in another service; no foreign keys here
        sa.Column('model_id', sa.Uuid(), nullable=True),
        sa.Column('part_id', sa.Uuid(), nullable=True),
        sa.Column('customer_id', sa.Uuid(), nullable=True),
        sa.Column('delivery_order_id', sa.Uuid(), nullable=True),
        sa.Column('material_id', sa.Uuid(), nullable=True),
        sa.Column('shift_id', sa.Uuid(), nullable=True),
        sa.Column('section_id', sa.Uuid(), nullable=True),
        sa.Column('checksheet_template_id', sa.Uuid(), nullable=True),
    )

    op.create_table(
        'fis',
        *_checksheet_columns(),
        sa.Column('id_fi', sa.String(50), nullable=False, unique=True),
        sa.Column('fi_number', sa.String(100), nullable=True),
        sa.Column('customer_specification', sa.Text, nullable=True),
        sa.Column('impeller_diameter', sa.Float, nullable=True),
        sa.Column('numeric_field', sa.Float, nullable=True),
        sa.Column('general_note', sa.Text, nullable=True),
        sa.Column('model_id', sa.Uuid(), nullable=True),
        sa.Column('customer_id', sa.Uuid(), nullable=True),
        sa.Column('shift_id', sa.Uuid(), nullable=True),
        sa.Column('section_id', sa.Uuid(), nullable=True),
        sa.Column('checksheet_template_id', sa.Uuid(), nullable=True),
    )

    op.create_table(
        'checksheet_revisions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('reference_type', postgresql.ENUM(name='checksheetkind', create_type=False), nullable=False),
        sa.Column('reference_id', sa.Uuid(), nullable=False),
        sa.Column('revision_number', sa.Integer, nullable=False),
        sa.Column('revision_note', sa.Text, nullable=False),
        sa.Column('revised_by', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )

    # A second writer allocating the same revision number loses here
    op.create_unique_constraint(
        'uq_checksheet_revisions_reference_number',
        'checksheet_revisions',
        ['reference_type', 'reference_id', 'revision_number']
    )
    op.create_index(
        'ix_checksheet_revisions_reference',
        'checksheet_revisions',
        ['reference_type', 'reference_id']
    )

    op.create_table(
        'checksheet_approvals',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('reference_type', postgresql.ENUM(name='checksheetkind', create_type=False), nullable=False),
        sa.Column('reference_id', sa.Uuid(), nullable=False),
        sa.Column('event', postgresql.ENUM(name='approvalevent', create_type=False), nullable=False),
        sa.Column('actor_id', sa.Uuid(), nullable=False),
        sa.Column('acted_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('note', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        'ix_checksheet_approvals_reference',
        'checksheet_approvals',
        ['reference_type', 'reference_id']
    )


def downgrade() -> None:
    op.drop_table('checksheet_approvals')
    op.drop_table('checksheet_revisions')
    op.drop_table('fis')
    op.drop_table('dirs')

    sa.Enum(name='approvalevent').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='checksheetkind').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='checksheetstatus').drop(op.get_bind(), checkfirst=True)
