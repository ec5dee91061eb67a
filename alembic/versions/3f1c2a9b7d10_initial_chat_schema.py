"""initial_chat_schema

Revision ID: 3f1c2a9b7d10
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = '3f1c2a9b7d10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users, chats, messages, llm_models, user_credits, documents, admin_settings, revoked_tokens."""
    op.create_table(
        'users',
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('password_hash', sa.Text(), server_default='', nullable=False),
        sa.Column('is_admin', sa.Integer(), server_default='0', nullable=False),
        sa.Column('is_active', sa.Integer(), server_default='1', nullable=False),
        sa.Column('created_at', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('user_id'),
    )

    op.create_table(
        'chats',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('title', sa.Text(), server_default='', nullable=False),
        sa.Column('mode', sa.Text(), server_default='research', nullable=False),
        sa.Column('document_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_chats_user_updated', 'chats', ['user_id', 'updated_at'], unique=False)

    op.create_table(
        'messages',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('chat_id', sa.Integer(), nullable=False),
        sa.Column('role', sa.Text(), nullable=False),
        sa.Column('content', sa.Text(), server_default='', nullable=False),
        sa.Column('model_id', sa.Text(), nullable=True),
        sa.Column('created_at', sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(['chat_id'], ['chats.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_messages_chat_id_id', 'messages', ['chat_id', 'id'], unique=False)

    op.create_table(
        'llm_models',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('model_id', sa.Text(), nullable=False),
        sa.Column('display_name', sa.Text(), server_default='', nullable=False),
        sa.Column('provider', sa.Text(), server_default='openrouter', nullable=False),
        sa.Column('cost_per_message', sa.Integer(), server_default='0', nullable=False),
        sa.Column('is_active', sa.Integer(), server_default='1', nullable=False),
        sa.Column('is_free', sa.Integer(), server_default='0', nullable=False),
        sa.Column('created_at', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('model_id'),
    )

    op.create_table(
        'user_credits',
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('total_credits', sa.Integer(), server_default='100', nullable=False),
        sa.Column('used_credits', sa.Integer(), server_default='0', nullable=False),
        sa.Column('created_at', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('user_id'),
    )

    op.create_table(
        'documents',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('title', sa.Text(), server_default='', nullable=False),
        sa.Column('content', sa.Text(), server_default='', nullable=False),
        sa.Column('excerpt', sa.Text(), server_default='', nullable=False),
        sa.Column('doc_type', sa.Text(), server_default='generated', nullable=False),
        sa.Column('chat_id', sa.Integer(), nullable=True),
        sa.Column('word_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('page_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('reference_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('created_at', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_documents_user_updated', 'documents', ['user_id', 'updated_at'], unique=False)

    op.create_table(
        'admin_settings',
        sa.Column('key', sa.String(), nullable=False),
        sa.Column('value', sa.Text(), server_default='', nullable=False),
        sa.Column('is_encrypted', sa.Integer(), server_default='0', nullable=False),
        sa.Column('updated_at', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('key'),
    )

    op.create_table(
        'revoked_tokens',
        sa.Column('token_hash', sa.Text(), nullable=False),
        sa.Column('expires_at', sa.Text(), nullable=False),
        sa.Column('revoked_at', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('token_hash'),
    )
    op.create_index('idx_revoked_tokens_expires_at', 'revoked_tokens', ['expires_at'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_revoked_tokens_expires_at', table_name='revoked_tokens')
    op.drop_table('revoked_tokens')
    op.drop_table('admin_settings')
    op.drop_index('idx_documents_user_updated', table_name='documents')
    op.drop_table('documents')
    op.drop_table('user_credits')
    op.drop_table('llm_models')
    op.drop_index('idx_messages_chat_id_id', table_name='messages')
    op.drop_table('messages')
    op.drop_index('idx_chats_user_updated', table_name='chats')
    op.drop_table('chats')
    op.drop_table('users')
