"""
Create chats, members, roles, permissions and the per-chat role level counter.

- roles.role_level is unique per chat; NULL is allowed (default role, and
  transiently while levels are being reassigned)
- the default role never carries a level
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = 'chat_roles_20261001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('username', sa.String(), nullable=False),
        sa.Column('display_name', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    op.create_table(
        'user_blocks',
        sa.Column('blocker_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('blocked_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('blocker_id <> blocked_id', name='ck_user_blocks_not_self'),
    )

    op.create_table(
        'chats',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('is_private', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("type in ('direct','group')", name='ck_chats_type'),
    )

    op.create_table(
        'chat_members',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('chat_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('chats.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('muted_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('chat_id', 'user_id', name='uq_chat_members_chat_id_user_id'),
    )
    op.create_index('idx_chat_members_user_id', 'chat_members', ['user_id'])

    op.create_table(
        'role_level_counters',
        sa.Column('chat_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('chats.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('last_level', sa.Integer(), nullable=False, server_default='0'),
        sa.CheckConstraint('last_level >= 0', name='ck_role_level_counters_non_negative'),
    )

    op.create_table(
        'permissions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(), nullable=False, unique=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'roles',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('chat_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('chats.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('role_level', sa.Integer(), nullable=True),
        sa.Column('is_default_role', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('chat_id', 'role_level', name='uq_roles_chat_id_role_level'),
        sa.CheckConstraint('NOT is_default_role OR role_level IS NULL', name='ck_roles_default_has_no_level'),
    )
    op.create_index('idx_roles_chat_id', 'roles', ['chat_id'])
    # At most one default role per chat
    op.execute("CREATE UNIQUE INDEX IF NOT EXISTS uq_roles_one_default_per_chat ON roles (chat_id) WHERE is_default_role")

    op.create_table(
        'role_permissions',
        sa.Column('role_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('roles.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('permission_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('permissions.id', ondelete='CASCADE'), primary_key=True),
    )

    op.create_table(
        'role_members',
        sa.Column('role_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('roles.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('member_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('chat_members.id', ondelete='CASCADE'), primary_key=True),
    )


def downgrade() -> None:
    op.drop_table('role_members')
    op.drop_table('role_permissions')
    op.execute("DROP INDEX IF EXISTS uq_roles_one_default_per_chat")
    op.drop_index('idx_roles_chat_id', table_name='roles')
    op.drop_table('roles')
    op.drop_table('permissions')
    op.drop_table('role_level_counters')
    op.drop_index('idx_chat_members_user_id', table_name='chat_members')
    op.drop_table('chat_members')
    op.drop_table('chats')
    op.drop_table('user_blocks')
    op.drop_index('ix_users_username', table_name='users')
    op.drop_table('users')
