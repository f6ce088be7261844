import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name, default):
    return os.getenv(name, str(default)).lower() in ('true', '1', 'yes')


class Config:
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-change-me')
    ADMIN_API_KEY = os.getenv('ADMIN_API_KEY')
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'postgresql://localhost/feedhub')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {'pool_pre_ping': True, 'pool_size': 5}
    STARTUP_DB_CHECK = _env_bool('STARTUP_DB_CHECK', True)

    # Embeddings / classification
    EMBEDDINGS_ENABLED = _env_bool('EMBEDDINGS_ENABLED', True)
    EMBEDDING_PROVIDER = os.getenv('EMBEDDING_PROVIDER', 'sentence-transformers')
    EMBEDDING_MODEL = os.getenv(
        'EMBEDDING_MODEL', 'sentence-transformers/paraphrase-multilingual-MiniLM-L12-v2'
    )
    OPENAI_API_KEY = os.getenv('OPENAI_API_KEY')
    CLASSIFIER_THRESHOLD = float(os.getenv('CLASSIFIER_THRESHOLD', '0.3'))
    CLASSIFIER_MAX_ALTERNATIVES = int(os.getenv('CLASSIFIER_MAX_ALTERNATIVES', '3'))
    CLASSIFIER_MAX_TEXT_LENGTH = int(os.getenv('CLASSIFIER_MAX_TEXT_LENGTH', '1000'))
    CLASSIFIER_PIVOT_LANGUAGE = os.getenv('CLASSIFIER_PIVOT_LANGUAGE', 'en')
    AUTO_TRANSLATE_ABSTRACTS = _env_bool('AUTO_TRANSLATE_ABSTRACTS', True)

    # Translation
    TRANSLATE_API_KEY = os.getenv('TRANSLATE_API_KEY') or os.getenv('GOOGLE_TRANSLATE_API_KEY')
    TRANSLATE_API_URL = os.getenv(
        'TRANSLATE_API_URL', 'https://translation.googleapis.com/language/translate/v2'
    )
    TRANSLATE_TIMEOUT = float(os.getenv('TRANSLATE_TIMEOUT', '10'))
    TRANSLATION_DEFAULT_TARGET = os.getenv('TRANSLATION_DEFAULT_TARGET', 'en')
    TRANSLATION_DEFAULT_SOURCE = os.getenv('TRANSLATION_DEFAULT_SOURCE', 'en')
    TRANSLATION_CACHE_TTL = int(os.getenv('TRANSLATION_CACHE_TTL', str(7 * 24 * 3600)))

    # Cache (seconds)
    CACHE_MAX_SIZE = int(os.getenv('CACHE_MAX_SIZE', '2000'))
    CACHE_DEFAULT_TTL = int(os.getenv('CACHE_DEFAULT_TTL', '1800'))
    RSS_CACHE_TTL = int(os.getenv('RSS_CACHE_TTL', '1800'))
    SIMILAR_ARTICLES_TTL = int(os.getenv('SIMILAR_ARTICLES_TTL', '900'))

    # Feed sync
    SYNC_STALE_MINUTES = int(os.getenv('SYNC_STALE_MINUTES', '60'))
    SYNC_MAX_WORKERS = int(os.getenv('SYNC_MAX_WORKERS', '4'))
    SYNC_DEADLINE_SECONDS = int(os.getenv('SYNC_DEADLINE_SECONDS', '0')) or None
    FEED_FETCH_TIMEOUT = float(os.getenv('FEED_FETCH_TIMEOUT', '30'))
    FEED_USER_AGENT = os.getenv('FEED_USER_AGENT', 'feedhub RSS Aggregator 1.0')
    MAX_CONCURRENT_HTTP = int(os.getenv('MAX_CONCURRENT_HTTP', '8'))

    # Scheduler
    SCHEDULER_ENABLED = _env_bool('SCHEDULER_ENABLED', True)
    SCHEDULER_API_ENABLED = False
    SYNC_CRON_MINUTE = int(os.getenv('SYNC_CRON_MINUTE', '0'))

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')


class TestConfig(Config):
    TESTING = True
    ADMIN_API_KEY = 'test-admin-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}  # SQLite doesn't support pool_size
    STARTUP_DB_CHECK = False
    SCHEDULER_ENABLED = False
    EMBEDDINGS_ENABLED = False  # tests inject a fake model
    OPENAI_API_KEY = None
    TRANSLATE_API_KEY = None  # Remote translation disabled in tests by default
    SYNC_MAX_WORKERS = 1
    SYNC_DEADLINE_SECONDS = None
