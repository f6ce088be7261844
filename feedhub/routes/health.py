from flask import Blueprint, jsonify
from sqlalchemy import text
from feedhub.extensions import db
from feedhub.services.registry import get_services

health_bp = Blueprint('health', __name__)


@health_bp.route('/health')
def health():
    return jsonify({'status': 'ok'})


@health_bp.route('/ready')
def ready():
    try:
        db.session.execute(text('SELECT 1'))
        db_ok = True
    except Exception:
        db_ok = False

    # The keyword fallback keeps classification working without the model.
    embeddings_ok = get_services().classifier.is_ready()

    status = 'ready' if db_ok else 'not_ready'
    code = 200 if db_ok else 503
    return jsonify({'status': status, 'db': db_ok, 'embeddings': embeddings_ok}), code
