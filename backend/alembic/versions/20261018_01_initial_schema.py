from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261018_01"
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default=sa.text('1')),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'batches',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('share_token', sa.String(length=32), nullable=False),
        sa.Column('owner_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('is_finalized', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('file_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_batches_share_token', 'batches', ['share_token'], unique=True)
    op.create_index('ix_batches_owner_id', 'batches', ['owner_id'])

    op.create_table(
        'files',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('filename', sa.String(), nullable=False),
        sa.Column('file_size', sa.BigInteger(), nullable=False),
        sa.Column('file_type', sa.String(), nullable=False, server_default=''),
        sa.Column('storage_path', sa.String(), nullable=False, unique=True),
        sa.Column('batch_id', sa.String(length=36), sa.ForeignKey('batches.id'), nullable=False),
        sa.Column('share_token', sa.String(length=32), nullable=False),
        sa.Column('owner_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('download_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('is_finalized', sa.Boolean(), nullable=False, server_default=sa.text('0')),
    )
    op.create_index('ix_files_batch_id', 'files', ['batch_id'])
    op.create_index('ix_files_share_token', 'files', ['share_token'])
    op.create_index('ix_files_owner_id', 'files', ['owner_id'])

def downgrade() -> None:
    op.drop_table('files')
    op.drop_table('batches')
    op.drop_table('users')
