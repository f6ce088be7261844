import logging
from contextlib import nullcontext

import feedparser
import requests

from feedhub.utils.hashing import rss_cache_key

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
DEFAULT_USER_AGENT = 'feedhub RSS Aggregator 1.0'


class FeedFetchError(Exception):
    pass


def fetch_payload(feed_url, timeout=DEFAULT_TIMEOUT, user_agent=DEFAULT_USER_AGENT, semaphore=None):
    """GET the raw feed document. Returns (content_bytes, version) where version is the ETag or Last-Modified."""
    guard = semaphore if semaphore is not None else nullcontext()
    try:
        with guard:
            resp = requests.get(
                feed_url,
                timeout=timeout,
                headers={'User-Agent': user_agent},
            )
            resp.raise_for_status()
    except requests.RequestException as e:
        raise FeedFetchError(f"Failed to fetch {feed_url}: {e}") from e

    version = resp.headers.get('ETag') or resp.headers.get('Last-Modified')
    return resp.content, version


def parse_payload(content, feed_url=''):
    """Parse raw RSS/Atom bytes. Raises FeedFetchError when nothing usable came back."""
    try:
        parsed = feedparser.parse(content)
    except Exception as e:
        raise FeedFetchError(f"Failed to parse feed {feed_url}: {e}") from e

    if parsed.bozo and not parsed.entries:
        # An empty but well-formed channel is fine; garbage is not.
        if not parsed.feed or not parsed.feed.get('title'):
            raise FeedFetchError(f"Malformed feed {feed_url}: {parsed.get('bozo_exception')}")
        logger.warning(f"Feed {feed_url} parsed with warnings: {parsed.get('bozo_exception')}")
    return parsed


def fetch_feed(feed_url, timeout=DEFAULT_TIMEOUT, user_agent=DEFAULT_USER_AGENT,
               semaphore=None, cache=None, cache_ttl=None):
    """
    Fetch and parse a feed. With a cache, the raw payload is stored under
    rss:<url>:<version> and the latest key is remembered under rss:<url>:latest.
    Always hits the network when no cache is given.
    """
    if cache is not None:
        latest_key = cache.get(rss_cache_key(feed_url, 'latest'))
        if latest_key:
            content = cache.get(latest_key)
            if content is not None:
                logger.debug(f"Feed payload cache hit for {feed_url}")
                return parse_payload(content, feed_url)

    content, version = fetch_payload(feed_url, timeout=timeout, user_agent=user_agent, semaphore=semaphore)
    parsed = parse_payload(content, feed_url)

    if cache is not None:
        key = rss_cache_key(feed_url, version)
        cache.set(key, content, ttl=cache_ttl)
        cache.set(rss_cache_key(feed_url, 'latest'), key, ttl=cache_ttl)

    logger.info(f"Fetched {len(parsed.entries)} entries from {feed_url}")
    return parsed
