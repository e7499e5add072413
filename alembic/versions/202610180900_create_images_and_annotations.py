"""
Create images and image_annotations tables
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
# revision identifiers, used by Alembic.
revision = '202610180900_create_images_and_annotations'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'images',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('owner_id', sa.String(length=255), nullable=False),
        sa.Column('filename', sa.String(length=1024), nullable=False),
        sa.Column('original_path', sa.String(length=2048), nullable=False),
        sa.Column('thumbnail_path', sa.String(length=2048), nullable=True),
        sa.Column('file_size', sa.BigInteger, nullable=True),
        sa.Column('mime_type', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_images_owner_id', 'images', ['owner_id'])
    op.create_index('idx_images_owner_created', 'images', ['owner_id', 'created_at'])

    op.create_table(
        'image_annotations',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('image_id', sa.Integer, sa.ForeignKey('images.id', ondelete='CASCADE'), nullable=False),
        sa.Column('owner_id', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('tags', postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('colors', postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('processing_status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.UniqueConstraint('image_id', name='uq_image_annotations_image_id'),
        sa.CheckConstraint(
            "processing_status IN ('pending', 'processing', 'completed', 'failed')",
            name='ck_image_annotations_processing_status',
        ),
    )
    op.create_index('ix_image_annotations_owner_id', 'image_annotations', ['owner_id'])
    op.create_index('ix_image_annotations_tags', 'image_annotations', ['tags'], postgresql_using='gin')

def downgrade():
    op.drop_index('ix_image_annotations_tags', table_name='image_annotations')
    op.drop_index('ix_image_annotations_owner_id', table_name='image_annotations')
    op.drop_table('image_annotations')
    op.drop_index('idx_images_owner_created', table_name='images')
    op.drop_index('ix_images_owner_id', table_name='images')
    op.drop_table('images')
