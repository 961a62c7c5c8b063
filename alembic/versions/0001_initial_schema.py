"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-01 09:00:00.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Directory mirror
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('upn', sa.String(length=255), nullable=False),
        sa.Column('display_name', sa.String(length=255), nullable=False),
        sa.Column('object_id', sa.String(length=64), nullable=True),
        sa.Column('department', sa.String(length=255), nullable=True),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('object_id')
    )
    op.create_index('ux_users_upn_lower', 'users', [sa.text('lower(upn)')], unique=True)
    op.create_index('idx_users_display_name', 'users', ['display_name'], unique=False)

    op.create_table(
        'groups',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('display_name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('object_id', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('object_id')
    )

    op.create_table(
        'group_members',
        sa.Column('group_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['group_id'], ['groups.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('group_id', 'user_id')
    )
    op.create_index('idx_group_members_user', 'group_members', ['user_id'], unique=False)

    # Locations and kiosk keys
    op.create_table(
        'locations',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('identifier', sa.String(length=100), nullable=False),
        sa.Column('notes_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ux_locations_identifier_lower', 'locations', [sa.text('lower(identifier)')], unique=True)

    op.create_table(
        'location_groups',
        sa.Column('location_id', sa.String(length=36), nullable=False),
        sa.Column('group_id', sa.String(length=36), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['location_id'], ['locations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['group_id'], ['groups.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('location_id', 'group_id')
    )
    op.create_index('idx_location_groups_group', 'location_groups', ['group_id'], unique=False)

    op.create_table(
        'user_locations',
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('location_id', sa.String(length=36), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['location_id'], ['locations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('user_id', 'location_id')
    )
    op.create_index('idx_user_locations_location', 'user_locations', ['location_id'], unique=False)

    op.create_table(
        'keys',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('key_value', sa.String(length=255), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('key_value')
    )

    op.create_table(
        'key_locations',
        sa.Column('key_id', sa.String(length=36), nullable=False),
        sa.Column('location_id', sa.String(length=36), nullable=False),
        sa.ForeignKeyConstraint(['key_id'], ['keys.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['location_id'], ['locations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('key_id', 'location_id')
    )
    op.create_index('idx_key_locations_location', 'key_locations', ['location_id'], unique=False)

    # Check-in ledger
    op.create_table(
        'checkins',
        sa.Column('id', sa.BigInteger().with_variant(sa.Integer(), 'sqlite'), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('location_id', sa.String(length=36), nullable=False),
        sa.Column('key_id', sa.String(length=36), nullable=True),
        sa.Column('direction', sa.String(length=3), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("direction IN ('in', 'out')", name='ck_checkins_direction'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['location_id'], ['locations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['key_id'], ['keys.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_checkins_occurred_at', 'checkins', ['occurred_at'], unique=False)
    op.create_index('idx_checkins_location_occurred', 'checkins', ['location_id', 'occurred_at'], unique=False)
    op.create_index('idx_checkins_user_occurred', 'checkins', ['user_id', 'occurred_at'], unique=False)

    # Portal background and other binary assets
    op.create_table(
        'assets',
        sa.Column('key', sa.String(length=100), nullable=False),
        sa.Column('content_type', sa.String(length=100), nullable=False),
        sa.Column('data', sa.LargeBinary(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('key')
    )


def downgrade() -> None:
    op.drop_table('assets')
    op.drop_index('idx_checkins_user_occurred', table_name='checkins')
    op.drop_index('idx_checkins_location_occurred', table_name='checkins')
    op.drop_index('idx_checkins_occurred_at', table_name='checkins')
    op.drop_table('checkins')
    op.drop_index('idx_key_locations_location', table_name='key_locations')
    op.drop_table('key_locations')
    op.drop_table('keys')
    op.drop_index('idx_user_locations_location', table_name='user_locations')
    op.drop_table('user_locations')
    op.drop_index('idx_location_groups_group', table_name='location_groups')
    op.drop_table('location_groups')
    op.drop_index('ux_locations_identifier_lower', table_name='locations')
    op.drop_table('locations')
    op.drop_index('idx_group_members_user', table_name='group_members')
    op.drop_table('group_members')
    op.drop_table('groups')
    op.drop_index('idx_users_display_name', table_name='users')
    op.drop_index('ux_users_upn_lower', table_name='users')
    op.drop_table('users')
