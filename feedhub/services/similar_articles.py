import logging

from sqlalchemy import or_

from feedhub.extensions import db
from feedhub.models import Article, ArticleAuthor
from feedhub.utils.hashing import similar_articles_cache_key

logger = logging.getLogger(__name__)

MAX_SIMILAR = 6
MAX_AUTHORS = 3
TITLE_PREFIX_WORDS = 3


def find_similar_articles(article_id, cache=None, ttl=None):
    """
    Articles related to `article_id`: same category, a shared author, or a
    title containing the first words of its title. Archived ones and the
    article itself are excluded. Returns None when the article does not exist.
    """
    key = similar_articles_cache_key(article_id)
    if cache is not None:
        cached = cache.get(key)
        if cached is not None:
            return cached

    article = db.session.get(Article, article_id)
    if article is None:
        return None

    conditions = []
    if article.category_id:
        conditions.append(Article.category_id == article.category_id)

    author_ids = [link.author_id for link in article.authors]
    if author_ids:
        shared = (
            db.session.query(ArticleAuthor.article_id)
            .filter(ArticleAuthor.author_id.in_(author_ids))
        )
        conditions.append(Article.id.in_(shared))

    prefix = ' '.join((article.title or '').split()[:TITLE_PREFIX_WORDS])
    if prefix:
        conditions.append(Article.title.ilike(f"%{prefix}%"))

    results = []
    if conditions:
        rows = (
            Article.query
            .filter(Article.id != article.id)
            .filter(Article.is_archived.isnot(True))
            .filter(or_(*conditions))
            .order_by(Article.publication_date.desc(), Article.view_count.desc())
            .limit(MAX_SIMILAR)
            .all()
        )
        results = [_summary(row) for row in rows]

    logger.debug(f"Found {len(results)} similar articles for {article_id}")
    if cache is not None:
        cache.set(key, results, ttl=ttl)
    return results


def _summary(article):
    return {
        'id': article.id,
        'title': article.title,
        'abstract': article.abstract,
        'publication_date': article.publication_date.isoformat() if article.publication_date else None,
        'view_count': article.view_count or 0,
        'category': article.category.to_dict() if article.category else None,
        'authors': article.author_names(limit=MAX_AUTHORS),
    }
