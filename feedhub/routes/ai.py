from flask import Blueprint, jsonify, request
from feedhub.services.registry import get_services

ai_bp = Blueprint('ai', __name__)


@ai_bp.route('/classify', methods=['POST'])
def classify():
    """Classify {title, abstract?, keywords?} into a category."""
    data = request.get_json()
    if not data or not (data.get('title') or '').strip():
        return jsonify({'error': 'JSON body with "title" required'}), 400

    keywords = data.get('keywords') or []
    if not isinstance(keywords, list):
        return jsonify({'error': '"keywords" must be a list'}), 400

    classifier = get_services().classifier
    result = classifier.classify_article(data['title'], data.get('abstract') or '', keywords)
    return jsonify({
        'classification': result.to_dict() if result else None,
        'system': classifier.system_info(),
    })


@ai_bp.route('/translate', methods=['POST'])
def translate():
    data = request.get_json()
    if not data or not isinstance(data.get('text'), str) or not data['text'].strip():
        return jsonify({'error': 'JSON body with "text" required'}), 400

    result = get_services().translator.translate(
        data['text'],
        target_language=data.get('target_language'),
        source_language=data.get('source_language'),
        preferred_provider=data.get('preferred_provider'),
    )
    return jsonify(result.to_dict())
