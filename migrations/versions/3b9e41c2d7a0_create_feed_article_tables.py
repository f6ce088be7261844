"""Create feeds, categories, authors, articles and article_authors

Revision ID: 3b9e41c2d7a0
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3b9e41c2d7a0'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'feeds',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=256), nullable=False),
        sa.Column('feed_url', sa.String(length=2048), nullable=False),
        sa.Column('feed_type', sa.String(length=8), nullable=True),
        sa.Column('journal_name', sa.String(length=256), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('sync_interval_min', sa.Integer(), nullable=True),
        sa.Column('last_sync_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('error_count', sa.Integer(), server_default='0', nullable=True),
        sa.Column('last_error', sa.String(length=512), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('feed_url'),
    )
    op.create_index('ix_feeds_active_last_sync', 'feeds', ['is_active', 'last_sync_at'], unique=False)

    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('slug', sa.String(length=128), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug'),
    )

    op.create_table(
        'authors',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=512), nullable=False),
        sa.Column('normalized_name', sa.String(length=512), nullable=False),
        sa.Column('article_count', sa.Integer(), server_default='0', nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('normalized_name'),
    )

    op.create_table(
        'articles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('feed_id', sa.Integer(), nullable=False),
        sa.Column('external_id', sa.String(length=1024), nullable=False),
        sa.Column('title', sa.String(length=1024), nullable=False),
        sa.Column('abstract', sa.Text(), nullable=True),
        sa.Column('authors_json', sa.JSON(), nullable=True),
        sa.Column('keywords_json', sa.JSON(), nullable=True),
        sa.Column('doi', sa.String(length=256), nullable=True),
        sa.Column('original_url', sa.String(length=2048), nullable=True),
        sa.Column('publication_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('feed_entry_date', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('category_id', sa.Integer(), nullable=True),
        sa.Column('view_count', sa.Integer(), server_default='0', nullable=True),
        sa.Column('is_archived', sa.Boolean(), server_default=sa.false(), nullable=True),
        sa.ForeignKeyConstraint(['feed_id'], ['feeds.id']),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('feed_id', 'external_id', name='uq_articles_feed_external'),
    )
    with op.batch_alter_table('articles', schema=None) as batch_op:
        batch_op.create_index('ix_articles_feed_id', ['feed_id'], unique=False)
        batch_op.create_index('ix_articles_category_id', ['category_id'], unique=False)
        batch_op.create_index('ix_articles_doi', ['doi'], unique=False)
        batch_op.create_index('ix_articles_publication_date', ['publication_date'], unique=False)

    op.create_table(
        'article_authors',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('article_id', sa.Integer(), nullable=False),
        sa.Column('author_id', sa.Integer(), nullable=False),
        sa.Column('author_order', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['article_id'], ['articles.id']),
        sa.ForeignKeyConstraint(['author_id'], ['authors.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('article_id', 'author_id', name='uq_article_authors_pair'),
    )
    op.create_index('ix_article_authors_author_id', 'article_authors', ['author_id'], unique=False)


def downgrade():
    op.drop_index('ix_article_authors_author_id', table_name='article_authors')
    op.drop_table('article_authors')

    with op.batch_alter_table('articles', schema=None) as batch_op:
        batch_op.drop_index('ix_articles_publication_date')
        batch_op.drop_index('ix_articles_doi')
        batch_op.drop_index('ix_articles_category_id')
        batch_op.drop_index('ix_articles_feed_id')
    op.drop_table('articles')

    op.drop_table('authors')
    op.drop_table('categories')
    op.drop_index('ix_feeds_active_last_sync', table_name='feeds')
    op.drop_table('feeds')
