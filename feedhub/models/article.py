from feedhub.extensions import db
from sqlalchemy import func


class Article(db.Model):
    __tablename__ = 'articles'

    id = db.Column(db.Integer, primary_key=True)
    feed_id = db.Column(db.Integer, db.ForeignKey('feeds.id'), nullable=False, index=True)
    external_id = db.Column(db.String(1024), nullable=False)
    title = db.Column(db.String(1024), nullable=False)
    abstract = db.Column(db.Text)
    authors_json = db.Column(db.JSON, default=list)
    keywords_json = db.Column(db.JSON, default=list)
    doi = db.Column(db.String(256), index=True)
    original_url = db.Column(db.String(2048))
    publication_date = db.Column(db.DateTime(timezone=True))
    feed_entry_date = db.Column(db.DateTime(timezone=True), server_default=func.now())
    category_id = db.Column(db.Integer, db.ForeignKey('categories.id'), nullable=True, index=True)
    view_count = db.Column(db.Integer, default=0)
    is_archived = db.Column(db.Boolean, default=False)

    feed = db.relationship('Feed', back_populates='articles')
    category = db.relationship('Category', back_populates='articles')
    authors = db.relationship(
        'ArticleAuthor',
        back_populates='article',
        order_by='ArticleAuthor.author_order',
        cascade='all, delete-orphan',
    )

    __table_args__ = (
        db.UniqueConstraint('feed_id', 'external_id', name='uq_articles_feed_external'),
        db.Index('ix_articles_publication_date', 'publication_date'),
    )

    def author_names(self, limit=None):
        links = self.authors[:limit] if limit else self.authors
        return [link.author.name for link in links]

    def to_dict(self):
        return {
            'id': self.id,
            'feed_id': self.feed_id,
            'external_id': self.external_id,
            'title': self.title,
            'abstract': self.abstract,
            'authors': self.author_names() or list(self.authors_json or []),
            'keywords': list(self.keywords_json or []),
            'doi': self.doi,
            'original_url': self.original_url,
            'publication_date': self.publication_date.isoformat() if self.publication_date else None,
            'feed_entry_date': self.feed_entry_date.isoformat() if self.feed_entry_date else None,
            'category': self.category.to_dict() if self.category else None,
            'view_count': self.view_count or 0,
        }


class ArticleAuthor(db.Model):
    __tablename__ = 'article_authors'

    id = db.Column(db.Integer, primary_key=True)
    article_id = db.Column(db.Integer, db.ForeignKey('articles.id'), nullable=False)
    author_id = db.Column(db.Integer, db.ForeignKey('authors.id'), nullable=False, index=True)
    author_order = db.Column(db.Integer, nullable=False)

    article = db.relationship('Article', back_populates='authors')
    author = db.relationship('Author', back_populates='articles')

    __table_args__ = (
        db.UniqueConstraint('article_id', 'author_id', name='uq_article_authors_pair'),
    )
