import pytest
import requests
from unittest.mock import patch, MagicMock
from datetime import datetime, timezone, timedelta

from sqlalchemy import func

from feedhub.extensions import db
from feedhub.models import Article, ArticleAuthor, Author, Category, Feed
from feedhub.jobs.scheduled import _feed_sync_job
from feedhub.pipeline import sync as sync_module
from feedhub.pipeline.sync import FeedSyncService, FeedSyncError, SyncInProgressError

URL_A = 'https://journal-a.example.com/rss'
URL_B = 'https://journal-b.example.com/rss'

DUPLICATE_GUID_XML = b"""<?xml version="1.0"?>
<rss version="2.0"><channel><title>Dupes</title>
<item><title>First copy</title><guid>urn:dup:1</guid></item>
<item><title>Second copy</title><guid>urn:dup:1</guid></item>
</channel></rss>"""


def _feed_response(content, headers=None):
    resp = MagicMock()
    resp.content = content
    resp.headers = headers or {}
    resp.raise_for_status.return_value = None
    return resp


def _serve(responses):
    """requests.get stand-in: URL -> payload bytes, or an exception to raise."""
    def fake_get(url, **kwargs):
        payload = responses[url]
        if isinstance(payload, Exception):
            raise payload
        return _feed_response(payload)
    return fake_get


@pytest.fixture
def sync_service(app, services):
    return FeedSyncService(services, app.config)


def _reset_sync_times():
    Feed.query.update({Feed.last_sync_at: None})
    db.session.commit()


def _failing_author_links(external_id):
    """_link_authors replacement that fails for one article only."""
    original = FeedSyncService._link_authors

    def link_authors(self, article, authors):
        if article.external_id == external_id:
            raise RuntimeError('author table unavailable')
        return original(self, article, authors)
    return link_authors


class TestStaleFeeds:
    def test_selection_and_order(self, db_session, sync_service):
        now = datetime.now(timezone.utc)
        old = Feed(name='Old', feed_url='https://old.example.com/rss', last_sync_at=now - timedelta(hours=2))
        never = Feed(name='Never', feed_url='https://never.example.com/rss')
        fresh = Feed(name='Fresh', feed_url='https://fresh.example.com/rss',
                     last_sync_at=now - timedelta(minutes=10))
        off = Feed(name='Off', feed_url='https://off.example.com/rss', is_active=False)
        db_session.add_all([old, never, fresh, off])
        db_session.commit()

        assert [f.name for f in sync_service.stale_feeds(now)] == ['Never', 'Old']


class TestSyncAll:
    def test_new_feeds(self, db_session, sync_service, sample_feeds, sample_rss_xml, second_rss_xml):
        with patch('feedhub.integrations.rss.requests.get',
                   side_effect=_serve({URL_A: sample_rss_xml, URL_B: second_rss_xml})):
            result = sync_service.sync_all_active_feeds()

        assert result.to_dict() == {'total_articles': 5, 'feeds_processed': 2, 'errors': []}
        assert Article.query.count() == 5
        for feed in sample_feeds[:2]:
            assert feed.last_sync_at is not None
            assert feed.error_count == 0
        # Inactive feeds are never touched
        assert sample_feeds[2].last_sync_at is None

    def test_single_feed_run_then_immediate_rerun(self, app, db_session, services, sample_rss_xml):
        db_session.add(Feed(name='JABA', feed_url=URL_A))
        db_session.commit()
        service = FeedSyncService(services, {**app.config, 'SYNC_STALE_MINUTES': 0})

        with patch('feedhub.integrations.rss.requests.get', side_effect=_serve({URL_A: sample_rss_xml})):
            first = service.sync_all_active_feeds()
            second = service.sync_all_active_feeds()

        assert (first.total_articles, first.feeds_processed) == (3, 1)
        assert (second.total_articles, second.feeds_processed) == (0, 1)

    def test_resync_is_idempotent(self, db_session, sync_service, sample_feeds, sample_rss_xml, second_rss_xml):
        with patch('feedhub.integrations.rss.requests.get',
                   side_effect=_serve({URL_A: sample_rss_xml, URL_B: second_rss_xml})):
            sync_service.sync_all_active_feeds()
            counts_before = {a.normalized_name: a.article_count for a in Author.query.all()}

            _reset_sync_times()
            result = sync_service.sync_all_active_feeds()

        assert result.total_articles == 0
        assert result.feeds_processed == 2
        assert Article.query.count() == 5
        assert {a.normalized_name: a.article_count for a in Author.query.all()} == counts_before

    def test_fresh_feeds_are_skipped(self, db_session, sync_service, sample_feeds, sample_rss_xml, second_rss_xml):
        with patch('feedhub.integrations.rss.requests.get',
                   side_effect=_serve({URL_A: sample_rss_xml, URL_B: second_rss_xml})) as mock_get:
            sync_service.sync_all_active_feeds()
            result = sync_service.sync_all_active_feeds()

        assert result.feeds_processed == 0
        assert mock_get.call_count == 2

    def test_fetch_failure_is_isolated(self, db_session, sync_service, sample_feeds, second_rss_xml):
        responses = {URL_A: requests.ConnectionError('connection refused'), URL_B: second_rss_xml}
        with patch('feedhub.integrations.rss.requests.get', side_effect=_serve(responses)):
            result = sync_service.sync_all_active_feeds()

        assert result.feeds_processed == 2
        assert result.total_articles == 2
        assert len(result.errors) == 1
        assert result.errors[0].startswith('Feed Journal A:')

        feed_a, feed_b = sample_feeds[0], sample_feeds[1]
        assert feed_a.error_count == 1
        assert 'connection refused' in feed_a.last_error
        assert feed_a.last_sync_at is not None
        assert feed_a.health_state() == 'healthy'
        assert feed_b.error_count == 0
        assert Article.query.count() == 2

    def test_recovery_clears_error(self, db_session, sync_service, sample_feeds, sample_rss_xml, second_rss_xml):
        failing = {URL_A: requests.Timeout('timed out'), URL_B: second_rss_xml}
        with patch('feedhub.integrations.rss.requests.get', side_effect=_serve(failing)):
            sync_service.sync_all_active_feeds()
            _reset_sync_times()
            sync_service.sync_all_active_feeds()
        assert sample_feeds[0].error_count == 2
        assert sample_feeds[0].health_state() == 'degraded'

        _reset_sync_times()
        with patch('feedhub.integrations.rss.requests.get',
                   side_effect=_serve({URL_A: sample_rss_xml, URL_B: second_rss_xml})):
            sync_service.sync_all_active_feeds()

        assert sample_feeds[0].error_count == 0
        assert sample_feeds[0].last_error is None

    def test_malformed_payload_is_feed_error(self, db_session, sync_service, sample_feeds, second_rss_xml):
        responses = {URL_A: b'this is not xml <<<', URL_B: second_rss_xml}
        with patch('feedhub.integrations.rss.requests.get', side_effect=_serve(responses)):
            result = sync_service.sync_all_active_feeds()

        assert len(result.errors) == 1
        assert sample_feeds[0].error_count == 1

    def test_deadline_stops_new_feeds(self, db_session, sync_service, sample_feeds):
        past = datetime.now(timezone.utc) - timedelta(seconds=1)
        with patch('feedhub.integrations.rss.requests.get') as mock_get:
            result = sync_service.sync_all_active_feeds(deadline=past)

        assert result.feeds_processed == 0
        assert result.errors == []
        mock_get.assert_not_called()
        assert sample_feeds[0].last_sync_at is None

    def test_parallel_workers_match_inline(self, app, db_session, services, sample_feeds,
                                           sample_rss_xml, second_rss_xml):
        service = FeedSyncService(services, {**app.config, 'SYNC_MAX_WORKERS': 3})
        with patch('feedhub.integrations.rss.requests.get',
                   side_effect=_serve({URL_A: sample_rss_xml, URL_B: second_rss_xml})):
            result = service.sync_all_active_feeds()

        assert result.total_articles == 5
        assert result.feeds_processed == 2
        assert result.errors == []

    def test_new_articles_invalidate_similar_cache(self, db_session, sync_service, services,
                                                   sample_feeds, sample_rss_xml, second_rss_xml):
        services.cache.set('similar:1', [])
        with patch('feedhub.integrations.rss.requests.get',
                   side_effect=_serve({URL_A: sample_rss_xml, URL_B: second_rss_xml})):
            sync_service.sync_all_active_feeds()
        assert services.cache.get('similar:1') is None


class TestSyncFeed:
    def test_new_feed_then_nothing_new(self, db_session, sync_service, sample_feeds, sample_rss_xml):
        feed = sample_feeds[0]
        with patch('feedhub.integrations.rss.requests.get', side_effect=_serve({URL_A: sample_rss_xml})):
            assert sync_service.sync_feed(feed.id) == 3
            assert sync_service.sync_feed(feed.id) == 0

        assert Article.query.filter_by(feed_id=feed.id).count() == 3

    def test_article_fields(self, db_session, sync_service, sample_feeds, sample_rss_xml):
        with patch('feedhub.integrations.rss.requests.get', side_effect=_serve({URL_A: sample_rss_xml})):
            sync_service.sync_feed(sample_feeds[0].id)

        article = Article.query.filter_by(external_id='https://doi.org/10.1002/jaba.123').one()
        assert article.doi == '10.1002/jaba.123'
        assert article.original_url == 'https://journal-a.example.com/articles/1'
        assert article.abstract.startswith('We report a functional analysis')
        assert article.keywords_json == ['education']
        assert article.category.slug == 'education'
        assert article.feed_entry_date is not None

    def test_categories_created_once(self, db_session, sync_service, sample_feeds, sample_rss_xml, second_rss_xml):
        with patch('feedhub.integrations.rss.requests.get',
                   side_effect=_serve({URL_A: sample_rss_xml, URL_B: second_rss_xml})):
            sync_service.sync_all_active_feeds()

        slugs = sorted(c.slug for c in Category.query.all())
        assert slugs == ['clinical', 'education', 'organizational']
        clinical = Category.query.filter_by(slug='clinical').one()
        assert clinical.description == 'Articles related to clinical'
        assert clinical.articles.count() == 2

    def test_authors_upserted_in_order(self, db_session, sync_service, sample_feeds, sample_rss_xml):
        with patch('feedhub.integrations.rss.requests.get', side_effect=_serve({URL_A: sample_rss_xml})):
            sync_service.sync_feed(sample_feeds[0].id)

        smith = Author.query.filter_by(normalized_name='john smith').one()
        assert smith.article_count == 2
        assert Author.query.filter_by(normalized_name='maria silva').one().article_count == 1

        article = Article.query.filter_by(external_id='https://doi.org/10.1002/jaba.123').one()
        assert [link.author_order for link in article.authors] == [1, 2]
        assert [link.author.name for link in article.authors] == ['Maria Silva', 'John Smith']
        assert article.authors_json == ['Maria Silva', 'John Smith']

    def test_duplicate_ids_in_payload(self, db_session, sync_service, sample_feeds):
        with patch('feedhub.integrations.rss.requests.get',
                   side_effect=_serve({URL_A: DUPLICATE_GUID_XML})):
            assert sync_service.sync_feed(sample_feeds[0].id) == 1

        assert Article.query.one().title == 'First copy'

    def test_dedup_key_is_unique(self, db_session, sync_service, sample_feeds, sample_rss_xml, second_rss_xml):
        with patch('feedhub.integrations.rss.requests.get',
                   side_effect=_serve({URL_A: sample_rss_xml, URL_B: second_rss_xml})):
            sync_service.sync_all_active_feeds()
            _reset_sync_times()
            sync_service.sync_all_active_feeds()

        pairs = db.session.query(Article.feed_id, Article.external_id).all()
        assert len(pairs) == len(set(pairs))
        assert db.session.query(func.count(ArticleAuthor.id)).scalar() == 6

    def test_failure_raises_after_recording(self, db_session, sync_service, sample_feeds):
        feed = sample_feeds[0]
        with patch('feedhub.integrations.rss.requests.get',
                   side_effect=_serve({URL_A: requests.HTTPError('404 Client Error')})):
            with pytest.raises(FeedSyncError, match='Journal A'):
                sync_service.sync_feed(feed.id)

        assert feed.error_count == 1
        assert '404' in feed.last_error

    def test_unknown_feed(self, db_session, sync_service):
        with pytest.raises(FeedSyncError):
            sync_service.sync_feed(999)

    def test_long_error_is_truncated(self, db_session, sync_service, sample_feeds):
        feed = sample_feeds[0]
        with patch('feedhub.integrations.rss.requests.get',
                   side_effect=_serve({URL_A: requests.ConnectionError('x' * 2000)})):
            with pytest.raises(FeedSyncError):
                sync_service.sync_feed(feed.id)
        assert len(feed.last_error) == 512

    def test_item_failure_keeps_rest_of_feed(self, db_session, sync_service, sample_feeds, sample_rss_xml):
        feed = sample_feeds[0]
        with patch('feedhub.integrations.rss.requests.get', side_effect=_serve({URL_A: sample_rss_xml})), \
                patch.object(FeedSyncService, '_link_authors', _failing_author_links('urn:journal-a:article-2')):
            added = sync_service.sync_feed(feed.id)

        assert added == 2
        stored = {a.external_id for a in Article.query.all()}
        assert stored == {'https://doi.org/10.1002/jaba.123', 'urn:journal-a:article-3'}
        assert Author.query.filter_by(normalized_name='john smith').one().article_count == 1
        assert feed.error_count == 0
        assert feed.last_error is None
        assert feed.last_sync_at is not None

    def test_item_failure_is_not_a_feed_error(self, db_session, sync_service, sample_feeds,
                                              sample_rss_xml, second_rss_xml):
        with patch('feedhub.integrations.rss.requests.get',
                   side_effect=_serve({URL_A: sample_rss_xml, URL_B: second_rss_xml})), \
                patch.object(FeedSyncService, '_link_authors', _failing_author_links('urn:journal-a:article-2')):
            result = sync_service.sync_all_active_feeds()

        assert result.to_dict() == {'total_articles': 4, 'feeds_processed': 2, 'errors': []}
        assert sample_feeds[0].error_count == 0


class TestSyncExclusion:
    def test_sync_all_refused_while_running(self, db_session, sync_service, sample_feeds):
        with patch('feedhub.integrations.rss.requests.get') as mock_get:
            with sync_module._sync_run_lock:
                with pytest.raises(SyncInProgressError):
                    sync_service.sync_all_active_feeds()

        mock_get.assert_not_called()
        assert sample_feeds[0].last_sync_at is None

    def test_sync_feed_refused_while_running(self, db_session, sync_service, sample_feeds):
        feed = sample_feeds[0]
        with patch('feedhub.integrations.rss.requests.get') as mock_get:
            with sync_module._sync_run_lock:
                with pytest.raises(SyncInProgressError):
                    sync_service.sync_feed(feed.id)

        mock_get.assert_not_called()
        assert feed.error_count == 0
        assert feed.last_sync_at is None

    def test_scheduled_job_skips_while_running(self, app, db_session, sample_feeds):
        with patch('feedhub.integrations.rss.requests.get') as mock_get:
            with sync_module._sync_run_lock:
                _feed_sync_job(app)

        mock_get.assert_not_called()
        assert Article.query.count() == 0

    def test_lock_released_after_failure(self, db_session, sync_service, sample_feeds, sample_rss_xml):
        feed = sample_feeds[0]
        with patch('feedhub.integrations.rss.requests.get',
                   side_effect=_serve({URL_A: requests.ConnectionError('refused')})):
            with pytest.raises(FeedSyncError):
                sync_service.sync_feed(feed.id)

        assert not sync_module._sync_run_lock.locked()
        with patch('feedhub.integrations.rss.requests.get', side_effect=_serve({URL_A: sample_rss_xml})):
            assert sync_service.sync_feed(feed.id) == 3


class TestFeedTest:
    def test_dry_run(self, db_session, sync_service, sample_atom_xml):
        url = 'https://pobs.example.com/atom'
        with patch('feedhub.integrations.rss.requests.get',
                   side_effect=_serve({url: sample_atom_xml})) as mock_get:
            result = sync_service.test_feed(url)
            again = sync_service.test_feed(url)

        assert result.success is True
        assert result.items_found == 1
        assert result.feed_title == 'Perspectives on Behavior Science'
        assert result.feed_description == 'Online first articles'
        sample = result.sample_items[0]
        assert sample['title'] == 'Verbal behavior revisited'
        assert sample['link'] == 'https://pobs.example.com/entry-1'
        assert sample['author'] == 'Jane Doe'
        assert sample['categories'] == ['verbal behavior']

        # Second call is served from the payload cache
        assert again.items_found == 1
        assert mock_get.call_count == 1
        assert Article.query.count() == 0

    def test_sample_items_capped(self, db_session, sync_service, sample_rss_xml):
        url = 'https://journal-a.example.com/rss'
        with patch('feedhub.integrations.rss.requests.get', side_effect=_serve({url: sample_rss_xml})):
            result = sync_service.test_feed(url)
        assert result.items_found == 3
        assert len(result.sample_items) == 3

    def test_unreachable_feed(self, db_session, sync_service):
        url = 'https://down.example.com/rss'
        with patch('feedhub.integrations.rss.requests.get',
                   side_effect=_serve({url: requests.ConnectionError('refused')})):
            result = sync_service.test_feed(url)

        assert result.success is False
        assert result.items_found == 0
        assert 'refused' in result.error
        assert 'sample_items' not in result.to_dict()

    def test_all_feeds(self, db_session, sync_service, sample_feeds, second_rss_xml):
        responses = {URL_A: requests.ConnectionError('refused'), URL_B: second_rss_xml}
        with patch('feedhub.integrations.rss.requests.get', side_effect=_serve(responses)):
            report = sync_service.test_all_feeds()

        assert [f['feed_name'] for f in report['working']] == ['Journal B']
        assert report['working'][0]['article_count'] == 2
        assert [f['feed_name'] for f in report['broken']] == ['Journal A']
