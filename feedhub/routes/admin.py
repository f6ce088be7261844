import hmac
from datetime import datetime, timezone
from functools import wraps
from flask import Blueprint, jsonify, request, current_app
from sqlalchemy.exc import IntegrityError
from feedhub.extensions import db
from feedhub.models import Feed
from feedhub.models.feed import FEED_TYPES
from feedhub.pipeline.sync import FeedSyncService, FeedSyncError, SyncInProgressError
from feedhub.services.registry import get_services

admin_bp = Blueprint('admin', __name__)

FEED_FIELDS = ['name', 'feed_url', 'feed_type', 'journal_name', 'is_active', 'sync_interval_min']


def _extract_admin_token():
    auth_header = request.headers.get('Authorization', '')
    if auth_header.lower().startswith('bearer '):
        return auth_header.split(' ', 1)[1].strip()
    return (request.headers.get('X-Admin-Key') or '').strip()


def require_admin_key(func):
    """Require ADMIN_API_KEY for all admin endpoints."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        configured_key = current_app.config.get('ADMIN_API_KEY')
        if not configured_key:
            return jsonify({'error': 'Admin API is disabled: ADMIN_API_KEY is not configured'}), 503

        presented_key = _extract_admin_token()
        if not presented_key or not hmac.compare_digest(presented_key, configured_key):
            return jsonify({'error': 'Unauthorized'}), 401

        return func(*args, **kwargs)

    return wrapper


def _sync_service():
    return FeedSyncService(get_services(), current_app.config)


def _validate_feed_type(data):
    if 'feed_type' in data:
        feed_type = str(data['feed_type']).upper()
        if feed_type not in FEED_TYPES:
            return None, f'"feed_type" must be one of {list(FEED_TYPES)}'
        data['feed_type'] = feed_type
    return data, None


@admin_bp.route('/feeds')
@require_admin_key
def list_feeds():
    """List all feeds with their health state."""
    feeds = Feed.query.order_by(Feed.name).all()
    return jsonify([f.to_dict() for f in feeds])


@admin_bp.route('/feeds', methods=['POST'])
@require_admin_key
def add_feed():
    data = request.get_json()
    if not data:
        return jsonify({'error': 'JSON body required'}), 400

    required = ['name', 'feed_url']
    missing = [f for f in required if f not in data]
    if missing:
        return jsonify({'error': f'Missing fields: {missing}'}), 400

    data, error = _validate_feed_type(data)
    if error:
        return jsonify({'error': error}), 400

    existing = Feed.query.filter_by(feed_url=data['feed_url']).first()
    if existing:
        return jsonify({'error': 'Feed with this URL already exists', 'id': existing.id}), 409

    feed = Feed(
        name=data['name'],
        feed_url=data['feed_url'],
        feed_type=data.get('feed_type', 'RSS2'),
        journal_name=data.get('journal_name'),
        is_active=data.get('is_active', True),
        sync_interval_min=data.get('sync_interval_min', 60),
    )
    db.session.add(feed)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': 'Feed with this URL already exists'}), 409

    return jsonify(feed.to_dict()), 201


@admin_bp.route('/feeds/<int:feed_id>', methods=['PUT'])
@require_admin_key
def update_feed(feed_id):
    feed = Feed.query.get_or_404(feed_id)
    data = request.get_json()
    if not data:
        return jsonify({'error': 'JSON body required'}), 400

    data, error = _validate_feed_type(data)
    if error:
        return jsonify({'error': error}), 400

    if 'feed_url' in data and data['feed_url'] != feed.feed_url:
        existing = Feed.query.filter_by(feed_url=data['feed_url']).first()
        if existing:
            return jsonify({'error': 'Feed with this URL already exists', 'id': existing.id}), 409

    for field in FEED_FIELDS:
        if field in data:
            setattr(feed, field, data[field])

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': 'Feed with this URL already exists'}), 409

    return jsonify(feed.to_dict())


@admin_bp.route('/feeds/<int:feed_id>', methods=['DELETE'])
@require_admin_key
def delete_feed(feed_id):
    """Soft-delete a feed (set is_active=False). Its articles stay."""
    feed = Feed.query.get_or_404(feed_id)
    feed.is_active = False
    db.session.commit()
    return jsonify({'status': 'deactivated', 'id': feed_id})


@admin_bp.route('/feeds/health')
@require_admin_key
def feed_health():
    now = datetime.now(timezone.utc)
    feeds = Feed.query.order_by(Feed.name).all()
    states = {'healthy': 0, 'degraded': 0, 'pending': 0, 'inactive': 0}

    items = []
    for feed in feeds:
        payload = feed.to_dict()
        states[payload['health_state']] = states.get(payload['health_state'], 0) + 1
        items.append(payload)

    return jsonify({
        'summary': states,
        'feeds': items,
        'generated_at': now.isoformat(),
    })


@admin_bp.route('/feeds/<int:feed_id>/sync', methods=['POST'])
@require_admin_key
def sync_feed(feed_id):
    feed = Feed.query.get_or_404(feed_id)
    try:
        added = _sync_service().sync_feed(feed.id)
    except SyncInProgressError as e:
        return jsonify({'error': str(e)}), 409
    except FeedSyncError as e:
        return jsonify({'error': str(e), 'feed': feed.to_dict()}), 502

    return jsonify({'status': 'synced', 'articles_added': added, 'feed': feed.to_dict()})


@admin_bp.route('/feeds/test', methods=['POST'])
@require_admin_key
def test_feed():
    """Fetch and parse a feed URL without storing anything."""
    data = request.get_json() or {}
    feed_url = (data.get('feed_url') or '').strip()
    if not feed_url:
        return jsonify({'error': 'JSON body with "feed_url" required'}), 400

    result = _sync_service().test_feed(feed_url)
    return jsonify(result.to_dict())


@admin_bp.route('/feeds/verify', methods=['POST'])
@require_admin_key
def verify_feeds():
    """Dry-run every active feed and split them into working and broken."""
    return jsonify(_sync_service().test_all_feeds())


@admin_bp.route('/sync-all', methods=['POST'])
@require_admin_key
def sync_all():
    try:
        result = _sync_service().sync_all_active_feeds()
    except SyncInProgressError as e:
        return jsonify({'error': str(e)}), 409
    return jsonify(result.to_dict())


@admin_bp.route('/translation/stats')
@require_admin_key
def translation_stats():
    services = get_services()
    return jsonify({
        'providers': services.translator.provider_stats(),
        'available_providers': services.translator.available_providers(),
        'cache': services.cache.stats(),
    })


@admin_bp.route('/translation/reset', methods=['POST'])
@require_admin_key
def reset_translation():
    """Zero provider statistics and drop cached translations."""
    translator = get_services().translator
    translator.reset_stats()
    cleared = translator.clear_cache()
    return jsonify({'status': 'reset', 'cache_entries_cleared': cleared})
