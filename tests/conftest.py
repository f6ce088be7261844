import hashlib
import os
import re

import numpy as np
import pytest
from datetime import datetime, timezone

from feedhub import create_app
from feedhub.extensions import db as _db
from feedhub.models import Feed
from feedhub.services.registry import EXTENSION_KEY, build_services
from config import TestConfig

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), 'fixtures')


class FakeEmbeddingModel:
    """Hashed bag-of-words. Deterministic, so texts sharing words land close together."""

    def __init__(self, dim=256):
        self.dim = dim
        self.calls = 0

    def get_sentence_embedding_dimension(self):
        return self.dim

    def encode(self, texts, **kwargs):
        self.calls += 1
        rows = []
        for text in texts:
            vec = np.zeros(self.dim, dtype=np.float32)
            for token in re.findall(r'\w+', text.lower()):
                idx = int(hashlib.md5(token.encode('utf-8')).hexdigest(), 16) % self.dim
                vec[idx] += 1.0
            norm = np.linalg.norm(vec)
            rows.append(vec / norm if norm else vec)
        return np.stack(rows)


@pytest.fixture(scope='session')
def app():
    """Create app with test config."""
    app = create_app(TestConfig)
    return app


@pytest.fixture(autouse=True)
def services(app):
    """Fresh service registry per test: empty cache, zeroed stats, keyword fallback."""
    registry = build_services(app.config)
    app.extensions[EXTENSION_KEY] = registry
    return registry


@pytest.fixture(autouse=True)
def setup_db(app):
    """Create tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_headers(app):
    return {'X-Admin-Key': app.config['ADMIN_API_KEY']}


@pytest.fixture
def db_session(app):
    with app.app_context():
        yield _db.session


@pytest.fixture
def fake_model():
    return FakeEmbeddingModel()


@pytest.fixture
def embedding_services(app, fake_model):
    """Registry whose classifier runs on the fake model with centroids computed."""
    registry = build_services(app.config, embedding_model=fake_model)
    registry.classifier.initialize()
    app.extensions[EXTENSION_KEY] = registry
    return registry


@pytest.fixture
def sample_feeds(db_session):
    """Insert 2 active feeds and 1 inactive one."""
    feeds = [
        Feed(
            name='Journal A',
            feed_url='https://journal-a.example.com/rss',
            feed_type='RSS2',
            journal_name='Journal A',
        ),
        Feed(
            name='Journal B',
            feed_url='https://journal-b.example.com/rss',
            feed_type='RSS2',
            journal_name='Journal B',
        ),
        Feed(
            name='Retired Journal',
            feed_url='https://retired.example.com/rss',
            feed_type='RSS2',
            is_active=False,
        ),
    ]
    for f in feeds:
        db_session.add(f)
    db_session.commit()
    return feeds


def load_fixture(name):
    with open(os.path.join(FIXTURES_DIR, name), 'rb') as f:
        return f.read()


@pytest.fixture
def sample_rss_xml():
    """RSS 2.0 feed with 3 items (one with a DOI, dc:creator authors)."""
    return load_fixture('sample_rss.xml')


@pytest.fixture
def second_rss_xml():
    return load_fixture('second_rss.xml')


@pytest.fixture
def sample_atom_xml():
    return load_fixture('sample_atom.xml')


@pytest.fixture
def utc_now():
    return datetime.now(timezone.utc)
