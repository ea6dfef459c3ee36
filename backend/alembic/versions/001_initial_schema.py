"""initial prompt versioning schema

Revision ID: 001
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('projects',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_projects_organization_id', 'projects', ['organization_id'])

    op.create_table('provider_api_keys',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('vendor', sa.String(50), nullable=False),
        sa.Column('key', sa.Text(), nullable=False, server_default=''),
        sa.Column('public_key', sa.String(32), nullable=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('base_url', sa.String(512), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('organization_id', 'vendor', name='uq_provider_api_keys_org_vendor'),
    )
    op.create_index('ix_provider_api_keys_organization_id', 'provider_api_keys', ['organization_id'])

    op.create_table('language_models',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=True),
        sa.Column('vendor', sa.String(50), nullable=False),
        sa.Column('parameters_config', sa.JSON(), nullable=True),
        sa.Column('prompt_price', sa.Float(), nullable=False, server_default='0'),
        sa.Column('completion_price', sa.Float(), nullable=False, server_default='0'),
        sa.Column('context_tokens_max', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('completion_tokens_max', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('api_key_id', sa.Uuid(), sa.ForeignKey('provider_api_keys.id', ondelete='CASCADE'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_language_models_api_key_id', 'language_models', ['api_key_id'])

    op.create_table('prompts',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('project_id', sa.Uuid(), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('value', sa.Text(), nullable=False, server_default=''),
        sa.Column('language_model_id', sa.Uuid(), sa.ForeignKey('language_models.id'), nullable=False),
        sa.Column('language_model_config', sa.JSON(), nullable=True),
        sa.Column('commited', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_prompts_project_id', 'prompts', ['project_id'])
    op.create_index('ix_prompts_language_model_id', 'prompts', ['language_model_id'])

    op.create_table('branches',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('prompt_id', sa.Uuid(), sa.ForeignKey('prompts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(100), nullable=False, server_default='master'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('prompt_id', 'name', name='uq_branches_prompt_name'),
    )

    op.create_table('prompt_versions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('branch_id', sa.Uuid(), sa.ForeignKey('branches.id', ondelete='CASCADE'), nullable=False),
        sa.Column('generation', sa.Integer(), nullable=False),
        sa.Column('commit_hash', sa.String(64), nullable=False),
        sa.Column('commit_msg', sa.Text(), nullable=True),
        sa.Column('value', sa.Text(), nullable=False, server_default=''),
        sa.Column('language_model_id', sa.Uuid(), sa.ForeignKey('language_models.id'), nullable=False),
        sa.Column('language_model_config', sa.JSON(), nullable=True),
        sa.Column('author', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('branch_id', 'generation', name='uq_prompt_versions_branch_generation'),
    )
    op.create_index('ix_prompt_versions_branch_id', 'prompt_versions', ['branch_id'])
    op.create_index('ix_prompt_versions_language_model_id', 'prompt_versions', ['language_model_id'])


def downgrade() -> None:
    op.drop_table('prompt_versions')
    op.drop_table('branches')
    op.drop_table('prompts')
    op.drop_table('language_models')
    op.drop_table('provider_api_keys')
    op.drop_table('projects')
