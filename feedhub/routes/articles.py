from flask import Blueprint, jsonify, request, current_app
from sqlalchemy import or_
from feedhub.extensions import db
from feedhub.models import Article, Category
from feedhub.services.registry import get_services
from feedhub.services.similar_articles import find_similar_articles

articles_bp = Blueprint('articles', __name__)

MAX_PER_PAGE = 100


@articles_bp.route('')
def list_articles():
    """Articles, newest first (paginated, filterable by category slug, feed id and text)."""
    page = request.args.get('page', 1, type=int)
    per_page = min(request.args.get('per_page', 20, type=int), MAX_PER_PAGE)
    category = request.args.get('category')
    feed_id = request.args.get('feed_id', type=int)
    q = (request.args.get('q') or '').strip()

    query = Article.query.filter(Article.is_archived.isnot(True))
    if category:
        query = query.join(Category).filter(Category.slug == category)
    if feed_id:
        query = query.filter(Article.feed_id == feed_id)
    if q:
        pattern = f"%{q}%"
        query = query.filter(or_(Article.title.ilike(pattern), Article.abstract.ilike(pattern)))

    pagination = query.order_by(
        Article.publication_date.desc(), Article.id.desc()
    ).paginate(page=page, per_page=per_page, error_out=False)

    return jsonify({
        'articles': [a.to_dict() for a in pagination.items],
        'total': pagination.total,
        'page': page,
        'per_page': per_page,
    })


@articles_bp.route('/<int:article_id>')
def get_article(article_id):
    article = db.session.get(Article, article_id)
    if article is None:
        return jsonify({'error': 'Article not found'}), 404
    return jsonify(article.to_dict())


@articles_bp.route('/<int:article_id>/similar')
def similar_articles(article_id):
    similar = find_similar_articles(
        article_id,
        cache=get_services().cache,
        ttl=current_app.config.get('SIMILAR_ARTICLES_TTL'),
    )
    if similar is None:
        return jsonify({'error': 'Article not found'}), 404
    return jsonify({'article_id': article_id, 'similar': similar})
