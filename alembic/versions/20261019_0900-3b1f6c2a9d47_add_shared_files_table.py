"""add_shared_files_table

Revision ID: 3b1f6c2a9d47
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3b1f6c2a9d47'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_ONLY = sa.text("deleted_at IS NULL")


def upgrade() -> None:
    # Create shared_files table
    op.create_table(
        'shared_files',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='主键ID'),
        sa.Column('storage_key', sa.String(length=512), nullable=False, comment='存储后端中的Key（路径）'),
        sa.Column('stored_name', sa.String(length=255), nullable=False, comment='随机存储文件名（含原扩展名）'),
        sa.Column('display_name', sa.String(length=255), nullable=False, comment='展示给下载方的原始文件名'),
        sa.Column('slug', sa.String(length=100), nullable=False, comment='公开链接标识'),
        sa.Column('size', sa.BigInteger(), nullable=False, server_default='0', comment='文件大小（字节）'),
        sa.Column('content_type', sa.String(length=255), nullable=True, comment='MIME类型'),
        sa.Column('password_hash', sa.String(length=255), nullable=True, comment='访问密码的bcrypt哈希（为空表示无需密码）'),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True, comment='过期时间（为空表示永不过期）'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, comment='更新时间'),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True, comment='删除时间（软删除）'),
        sa.PrimaryKeyConstraint('id', name='pk_shared_files'),
        comment='分享文件表，记录上传文件与其公开链接'
    )

    # Partial unique indexes: only live rows compete for a slug / stored name
    op.create_index(
        'uq_shared_files_slug_active', 'shared_files', ['slug'], unique=True,
        sqlite_where=ACTIVE_ONLY, postgresql_where=ACTIVE_ONLY,
    )
    op.create_index(
        'uq_shared_files_stored_name_active', 'shared_files', ['stored_name'], unique=True,
        sqlite_where=ACTIVE_ONLY, postgresql_where=ACTIVE_ONLY,
    )
    op.create_index('ix_shared_files_display_name', 'shared_files', ['display_name'], unique=False)
    op.create_index('ix_shared_files_expires_at', 'shared_files', ['expires_at'], unique=False)
    op.create_index('ix_shared_files_created_at', 'shared_files', ['created_at'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_shared_files_created_at', table_name='shared_files')
    op.drop_index('ix_shared_files_expires_at', table_name='shared_files')
    op.drop_index('ix_shared_files_display_name', table_name='shared_files')
    op.drop_index('uq_shared_files_stored_name_active', table_name='shared_files')
    op.drop_index('uq_shared_files_slug_active', table_name='shared_files')
    op.drop_table('shared_files')
