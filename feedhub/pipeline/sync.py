"""
Feed synchronization: pick stale feeds, fetch them, turn items into articles.

Workers fetch, extract and classify one feed each without touching the
database. The calling thread persists every feed's items as its worker
finishes, so the dedup check and insert for a (feed, external id) pair are
never interleaved and each feed's health is written once per run.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone, timedelta
from typing import List, Optional, Set

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from feedhub.extensions import db
from feedhub.integrations.rss import fetch_feed
from feedhub.models import Article, ArticleAuthor, Author, Category, Feed
from feedhub.pipeline.extract import parse_item
from feedhub.utils.text import normalize_author_name

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 512
SAMPLE_ITEMS = 3

# One sync run per process: scheduled, sync-all and single-feed runs exclude each other.
_sync_run_lock = threading.Lock()


class FeedSyncError(Exception):
    pass


class SyncInProgressError(FeedSyncError):
    pass


def _acquire_run_lock():
    if not _sync_run_lock.acquire(blocking=False):
        raise SyncInProgressError("Sync already running")


@dataclass
class SyncResult:
    total_articles: int = 0
    feeds_processed: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self):
        return asdict(self)


@dataclass
class FeedTestResult:
    success: bool
    items_found: int = 0
    feed_title: Optional[str] = None
    feed_description: Optional[str] = None
    sample_items: Optional[list] = None
    error: Optional[str] = None

    def to_dict(self):
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class FeedJob:
    """What a worker needs to know about a feed. Plain values only, no ORM objects."""
    feed_id: int
    name: str
    feed_url: str
    feed_type: str
    known_ids: Set[str] = field(default_factory=set)


@dataclass
class PreparedItem:
    record: dict
    classification: Optional[object] = None


@dataclass
class FeedOutcome:
    feed_id: int
    items: List[PreparedItem] = field(default_factory=list)
    entries_seen: int = 0
    error: Optional[str] = None
    skipped: bool = False


class FeedSyncService:
    def __init__(self, services, config):
        self.services = services
        self.stale_minutes = int(config.get('SYNC_STALE_MINUTES', 60))
        self.max_workers = int(config.get('SYNC_MAX_WORKERS', 1) or 1)
        self.deadline_seconds = config.get('SYNC_DEADLINE_SECONDS')
        self.fetch_timeout = config.get('FEED_FETCH_TIMEOUT', 30)
        self.user_agent = config.get('FEED_USER_AGENT', 'feedhub RSS Aggregator 1.0')
        self.rss_cache_ttl = config.get('RSS_CACHE_TTL')

    # -- selection ---------------------------------------------------------

    def stale_feeds(self, now=None):
        """Active feeds never synced or last synced before the staleness window, oldest first."""
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(minutes=self.stale_minutes)
        return (
            Feed.query
            .filter_by(is_active=True)
            .filter(or_(Feed.last_sync_at.is_(None), Feed.last_sync_at <= cutoff))
            .order_by(Feed.last_sync_at.isnot(None), Feed.last_sync_at.asc())
            .all()
        )

    # -- runs --------------------------------------------------------------

    def sync_all_active_feeds(self, deadline=None):
        """Raises SyncInProgressError when another run holds the lock."""
        _acquire_run_lock()
        try:
            return self._sync_stale_feeds(deadline)
        finally:
            _sync_run_lock.release()

    def _sync_stale_feeds(self, deadline):
        if deadline is None and self.deadline_seconds:
            deadline = datetime.now(timezone.utc) + timedelta(seconds=int(self.deadline_seconds))

        feeds = self.stale_feeds()
        jobs = [self._job_for(feed) for feed in feeds]
        result = SyncResult()
        logger.info(f"[Sync] {len(jobs)} feeds due (workers={self.max_workers})")

        if self.max_workers <= 1 or len(jobs) <= 1:
            for job in jobs:
                outcome = self._prepare_feed(job, deadline)
                self._apply_outcome(job, outcome, result)
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = {executor.submit(self._prepare_feed, job, deadline): job for job in jobs}
                for future in as_completed(futures):
                    job = futures[future]
                    self._apply_outcome(job, future.result(), result)

        if result.total_articles:
            self.services.cache.invalidate_by_pattern('similar:')

        logger.info(
            f"[Sync] Complete: {result.total_articles} articles, "
            f"{result.feeds_processed} feeds, {len(result.errors)} errors"
        )
        for error in result.errors:
            logger.error(f"[Sync]   - {error}")
        return result

    def sync_feed(self, feed_id):
        """Sync one feed now regardless of staleness. Returns the number of articles added."""
        feed = db.session.get(Feed, feed_id)
        if feed is None:
            raise FeedSyncError(f"Feed {feed_id} not found")

        _acquire_run_lock()
        try:
            return self._sync_one(feed)
        finally:
            _sync_run_lock.release()

    def _sync_one(self, feed):
        job = self._job_for(feed)
        outcome = self._prepare_feed(job)
        result = SyncResult()
        self._apply_outcome(job, outcome, result)
        if result.errors:
            raise FeedSyncError(result.errors[0])

        if result.total_articles:
            self.services.cache.invalidate_by_pattern('similar:')
        return result.total_articles

    # -- worker side (no database access) ----------------------------------

    def _job_for(self, feed):
        known = {
            row[0] for row in
            db.session.query(Article.external_id).filter(Article.feed_id == feed.id)
        }
        return FeedJob(
            feed_id=feed.id,
            name=feed.name,
            feed_url=feed.feed_url,
            feed_type=feed.feed_type or 'RSS2',
            known_ids=known,
        )

    def _prepare_feed(self, job, deadline=None):
        if deadline is not None and datetime.now(timezone.utc) >= deadline:
            logger.warning(f"[Sync] Deadline passed, not starting feed {job.name}")
            return FeedOutcome(feed_id=job.feed_id, skipped=True)

        outcome = FeedOutcome(feed_id=job.feed_id)
        try:
            parsed = fetch_feed(
                job.feed_url,
                timeout=self.fetch_timeout,
                user_agent=self.user_agent,
                semaphore=self.services.http_semaphore,
            )
        except Exception as e:
            outcome.error = str(e) or e.__class__.__name__
            return outcome

        entries = parsed.entries or []
        outcome.entries_seen = len(entries)
        seen = set(job.known_ids)
        for entry in entries:
            try:
                record = parse_item(entry, job.feed_type)
                if record['external_id'] in seen:
                    continue
                seen.add(record['external_id'])
                classification = self.services.classifier.classify_article(
                    record['title'], record['abstract'], record['keywords'],
                )
                outcome.items.append(PreparedItem(record=record, classification=classification))
            except Exception as e:
                logger.error(f"Failed to prepare item from feed {job.name}: {e}")
        return outcome

    # -- persistence (calling thread) --------------------------------------

    def _apply_outcome(self, job, outcome, result):
        if outcome.skipped:
            return

        result.feeds_processed += 1
        feed = db.session.get(Feed, job.feed_id)
        now = datetime.now(timezone.utc)

        if outcome.error:
            message = f"Feed {job.name}: {outcome.error}"
            result.errors.append(message)
            logger.error(f"[Sync] {message}")
            self._mark_feed_failure(feed, outcome.error, now)
            return

        try:
            added = self._persist_items(job, outcome.items)
            self._mark_feed_success(feed, now)
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            message = f"Feed {job.name}: {e}"
            result.errors.append(message)
            logger.error(f"[Sync] {message}", exc_info=True)
            self._mark_feed_failure(db.session.get(Feed, job.feed_id), str(e), now)
            return

        result.total_articles += added
        logger.info(f"[Sync] Feed {job.name}: {added} new articles from {outcome.entries_seen} entries")

    def _persist_items(self, job, items):
        added = 0
        category_ids = {}
        for prepared in items:
            try:
                if self._persist_item(job.feed_id, prepared, category_ids):
                    added += 1
            except IntegrityError:
                logger.debug(f"Article {prepared.record['external_id']} already stored, skipping")
            except Exception as e:
                logger.error(f"Failed to store item from feed {job.name}: {e}")
        return added

    def _persist_item(self, feed_id, prepared, category_ids):
        record = prepared.record
        exists = (
            db.session.query(Article.id)
            .filter_by(feed_id=feed_id, external_id=record['external_id'])
            .first()
        )
        if exists:
            return False

        category_id = self._resolve_category_id(prepared.classification, category_ids)
        with db.session.begin_nested():
            article = Article(
                feed_id=feed_id,
                external_id=record['external_id'],
                title=record['title'],
                abstract=record['abstract'] or None,
                authors_json=record['authors'],
                keywords_json=record['keywords'],
                doi=record['doi'],
                original_url=record['url'] or None,
                publication_date=record['publication_date'],
                feed_entry_date=datetime.now(timezone.utc),
                category_id=category_id,
            )
            db.session.add(article)
            db.session.flush()
            self._link_authors(article, record['authors'])
        return True

    def _resolve_category_id(self, classification, category_ids):
        if classification is None:
            return None
        slug = classification.slug
        if slug in category_ids:
            return category_ids[slug]

        category = Category.query.filter_by(slug=slug).first()
        if category is None:
            try:
                with db.session.begin_nested():
                    category = Category(
                        name=classification.category,
                        slug=slug,
                        description=f"Articles related to {classification.category.lower()}",
                    )
                    db.session.add(category)
                    db.session.flush()
            except IntegrityError:
                category = Category.query.filter_by(slug=slug).first()
        if category is None:
            return None

        category_ids[slug] = category.id
        return category.id

    def _link_authors(self, article, authors):
        linked = set()
        for name in authors:
            normalized = normalize_author_name(name)
            if not normalized or normalized in linked:
                continue
            linked.add(normalized)
            author = self._upsert_author(name, normalized)
            db.session.add(ArticleAuthor(article_id=article.id, author_id=author.id, author_order=len(linked)))
        db.session.flush()

    def _upsert_author(self, name, normalized):
        author = Author.query.filter_by(normalized_name=normalized).first()
        if author is None:
            try:
                with db.session.begin_nested():
                    author = Author(name=name, normalized_name=normalized, article_count=1)
                    db.session.add(author)
                    db.session.flush()
                return author
            except IntegrityError:
                author = Author.query.filter_by(normalized_name=normalized).one()

        author.name = name
        author.article_count = (author.article_count or 0) + 1
        return author

    def _mark_feed_success(self, feed, synced_at):
        feed.last_sync_at = synced_at
        feed.error_count = 0
        feed.last_error = None

    def _mark_feed_failure(self, feed, error, synced_at):
        if feed is None:
            return
        feed.last_sync_at = synced_at
        feed.error_count = (feed.error_count or 0) + 1
        feed.last_error = (error or 'unknown error')[:MAX_ERROR_LENGTH]
        try:
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Failed to record error for feed {feed.id}: {e}")

    # -- dry runs ----------------------------------------------------------

    def test_feed(self, feed_url):
        """Fetch and parse without storing anything."""
        try:
            parsed = fetch_feed(
                feed_url,
                timeout=self.fetch_timeout,
                user_agent=self.user_agent,
                semaphore=self.services.http_semaphore,
                cache=self.services.cache,
                cache_ttl=self.rss_cache_ttl,
            )
        except Exception as e:
            return FeedTestResult(success=False, items_found=0, error=str(e) or 'unknown error')

        entries = parsed.entries or []
        samples = [
            {
                'title': entry.get('title'),
                'link': entry.get('link'),
                'pubDate': entry.get('published') or entry.get('updated'),
                'author': entry.get('author'),
                'categories': [t.get('term') for t in entry.get('tags', []) if t.get('term')],
            }
            for entry in entries[:SAMPLE_ITEMS]
        ]
        return FeedTestResult(
            success=True,
            items_found=len(entries),
            feed_title=parsed.feed.get('title'),
            feed_description=parsed.feed.get('description') or parsed.feed.get('subtitle'),
            sample_items=samples,
        )

    def test_all_feeds(self):
        """Dry-run every active feed. Returns {'working': [...], 'broken': [...]}."""
        working, broken = [], []
        for feed in Feed.query.filter_by(is_active=True).order_by(Feed.name).all():
            result = self.test_feed(feed.feed_url)
            summary = {'feed_id': feed.id, 'feed_name': feed.name, 'feed_url': feed.feed_url}
            if result.success:
                working.append({**summary, 'is_working': True, 'article_count': result.items_found})
            else:
                broken.append({**summary, 'is_working': False, 'error': result.error})
        return {'working': working, 'broken': broken}
