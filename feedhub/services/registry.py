import logging
import threading
from dataclasses import dataclass

from flask import current_app

from feedhub.services.cache_service import TTLCache
from feedhub.services.category_index import CategoryIndex
from feedhub.services.classifier import EmbeddingClassifier, KeywordClassifier
from feedhub.services.embedding_service import EmbeddingService
from feedhub.services.language import LanguageDetector
from feedhub.services.translation_service import TranslationManager

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'feedhub'


@dataclass
class ServiceRegistry:
    cache: TTLCache
    detector: LanguageDetector
    translator: TranslationManager
    embedding_service: EmbeddingService
    category_index: CategoryIndex
    classifier: EmbeddingClassifier
    http_semaphore: threading.BoundedSemaphore


def build_services(config, embedding_model=None):
    """Wire the core services from a config mapping. `embedding_model` overrides the loaded model."""
    cache = TTLCache(
        max_size=config.get('CACHE_MAX_SIZE', 2000),
        default_ttl=config.get('CACHE_DEFAULT_TTL', 1800),
    )
    http_semaphore = threading.BoundedSemaphore(max(int(config.get('MAX_CONCURRENT_HTTP', 8)), 1))
    detector = LanguageDetector(default=config.get('TRANSLATION_DEFAULT_SOURCE', 'en'))
    translator = TranslationManager.from_config(
        config, detector, cache=cache, http_semaphore=http_semaphore,
    )
    embedding_service = EmbeddingService(
        provider=config.get('EMBEDDING_PROVIDER', 'sentence-transformers'),
        model=config.get('EMBEDDING_MODEL'),
        api_key=config.get('OPENAI_API_KEY'),
        model_instance=embedding_model,
    )
    category_index = CategoryIndex()
    classifier = EmbeddingClassifier(
        embedding_service,
        category_index,
        translator=translator,
        fallback=KeywordClassifier(),
        threshold=config.get('CLASSIFIER_THRESHOLD', 0.3),
        max_alternatives=config.get('CLASSIFIER_MAX_ALTERNATIVES', 3),
        max_text_length=config.get('CLASSIFIER_MAX_TEXT_LENGTH', 1000),
        pivot_language=config.get('CLASSIFIER_PIVOT_LANGUAGE', 'en'),
        auto_translate=config.get('AUTO_TRANSLATE_ABSTRACTS', True),
    )
    return ServiceRegistry(
        cache=cache,
        detector=detector,
        translator=translator,
        embedding_service=embedding_service,
        category_index=category_index,
        classifier=classifier,
        http_semaphore=http_semaphore,
    )


def init_classifier(services):
    """Load the embedding model and centroids. Failure leaves the keyword fallback in charge."""
    try:
        services.classifier.initialize()
    except Exception as e:
        logger.warning(f"Embedding classifier unavailable, keyword fallback in use: {e}")
        return False
    return services.classifier.is_ready()


def get_services():
    return current_app.extensions[EXTENSION_KEY]
