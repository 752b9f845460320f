"""create localization tables"""

from alembic import op
import sqlalchemy as sa
from typing import Sequence, Union

revision: str = '20261019_01'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.UUID(as_uuid=True), primary_key=True),
        sa.Column('email', sa.String(), nullable=False, unique=True),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('full_name', sa.String()),
        sa.Column('is_admin', sa.Boolean(), server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_table(
        'organizations',
        sa.Column('id', sa.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('base_permission', sa.String(), nullable=False, server_default='VIEW'),
        sa.Column('created_by', sa.UUID(as_uuid=True), sa.ForeignKey('users.id')),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_table(
        'organization_members',
        sa.Column('organization_id', sa.UUID(as_uuid=True), sa.ForeignKey('organizations.id'), primary_key=True),
        sa.Column('user_id', sa.UUID(as_uuid=True), sa.ForeignKey('users.id'), primary_key=True),
        sa.Column('role', sa.String(), nullable=False, server_default='MEMBER'),
    )
    op.create_table(
        'projects',
        sa.Column('id', sa.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.String()),
        sa.Column('organization_id', sa.UUID(as_uuid=True), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('base_language_id', sa.UUID(as_uuid=True), nullable=True),
        sa.Column('created_by', sa.UUID(as_uuid=True), sa.ForeignKey('users.id')),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_table(
        'project_permissions',
        sa.Column('id', sa.UUID(as_uuid=True), primary_key=True),
        sa.Column('project_id', sa.UUID(as_uuid=True), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('user_id', sa.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('type', sa.String(), nullable=False, server_default='VIEW'),
        sa.Column('view_language_ids', sa.JSON()),
        sa.Column('translate_language_ids', sa.JSON()),
        sa.Column('state_change_language_ids', sa.JSON()),
        sa.UniqueConstraint('project_id', 'user_id'),
    )
    op.create_table(
        'api_keys',
        sa.Column('id', sa.UUID(as_uuid=True), primary_key=True),
        sa.Column('key_hash', sa.String(), nullable=False, unique=True),
        sa.Column('description', sa.String()),
        sa.Column('project_id', sa.UUID(as_uuid=True), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('user_id', sa.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('scopes', sa.JSON()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_table(
        'languages',
        sa.Column('id', sa.UUID(as_uuid=True), primary_key=True),
        sa.Column('project_id', sa.UUID(as_uuid=True), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('tag', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('original_name', sa.String()),
        sa.UniqueConstraint('project_id', 'tag'),
    )
    op.create_table(
        'keys',
        sa.Column('id', sa.UUID(as_uuid=True), primary_key=True),
        sa.Column('project_id', sa.UUID(as_uuid=True), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('namespace', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.UniqueConstraint('project_id', 'name', 'namespace'),
    )
    op.create_table(
        'translations',
        sa.Column('id', sa.UUID(as_uuid=True), primary_key=True),
        sa.Column('key_id', sa.UUID(as_uuid=True), sa.ForeignKey('keys.id'), nullable=False),
        sa.Column('language_id', sa.UUID(as_uuid=True), sa.ForeignKey('languages.id'), nullable=False),
        sa.Column('text', sa.Text(), nullable=True),
        sa.Column('state', sa.String(), nullable=False, server_default='UNTRANSLATED'),
        sa.Column('outdated', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('auto_translated', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('mt_provider', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.UniqueConstraint('key_id', 'language_id'),
    )
    op.create_table(
        'translation_comments',
        sa.Column('id', sa.UUID(as_uuid=True), primary_key=True),
        sa.Column('translation_id', sa.UUID(as_uuid=True), sa.ForeignKey('translations.id'), nullable=False),
        sa.Column('author_id', sa.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('state', sa.String(), nullable=False, server_default='RESOLUTION_NOT_NEEDED'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_table(
        'translation_history',
        sa.Column('id', sa.UUID(as_uuid=True), primary_key=True),
        sa.Column('translation_id', sa.UUID(as_uuid=True), sa.ForeignKey('translations.id'), nullable=False),
        sa.Column('project_id', sa.UUID(as_uuid=True), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('author_id', sa.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('activity', sa.String(), nullable=False),
        sa.Column('text', sa.Text(), nullable=True),
        sa.Column('state', sa.String(), nullable=False),
        sa.Column('outdated', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('auto_translated', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('timestamp', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_translation_history_translation_id', 'translation_history', ['translation_id'])
    op.create_table(
        'project_freshness',
        sa.Column('project_id', sa.UUID(as_uuid=True), sa.ForeignKey('projects.id'), primary_key=True),
        sa.Column('last_modified', sa.BigInteger(), nullable=False, server_default='0'),
    )
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', sa.UUID(as_uuid=True), sa.ForeignKey('users.id')),
        sa.Column('api_key_id', sa.UUID(as_uuid=True), sa.ForeignKey('api_keys.id'), nullable=True),
        sa.Column('project_id', sa.UUID(as_uuid=True), sa.ForeignKey('projects.id'), nullable=True),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('target_type', sa.String()),
        sa.Column('target_id', sa.UUID(as_uuid=True)),
        sa.Column('details', sa.JSON()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_audit_logs_project_id', 'audit_logs', ['project_id'])


def downgrade() -> None:
    op.drop_index('ix_audit_logs_project_id', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_table('project_freshness')
    op.drop_index('ix_translation_history_translation_id', table_name='translation_history')
    op.drop_table('translation_history')
    op.drop_table('translation_comments')
    op.drop_table('translations')
    op.drop_table('keys')
    op.drop_table('languages')
    op.drop_table('api_keys')
    op.drop_table('project_permissions')
    op.drop_table('projects')
    op.drop_table('organization_members')
    op.drop_table('organizations')
    op.drop_table('users')
