"""
Feed item -> normalized article record.

Every field has a safe default: one malformed item must never stop the rest
of a feed from being processed, so nothing in here raises.
"""

import calendar
import logging
import re
import uuid
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

from feedhub.utils.text import clean_text, unique_stripped

logger = logging.getLogger(__name__)

DOI_PATTERNS = [
    re.compile(r'doi:?\s*(10\.\d+/[^\s<>"\']+)', re.IGNORECASE),
    re.compile(r'https?://(?:dx\.)?doi\.org/(10\.\d+/[^\s<>"\']+)', re.IGNORECASE),
    re.compile(r'(10\.\d{4,}/[^\s<>"\']+)', re.IGNORECASE),
]
DOI_TRAILING = re.compile(r'[.,;:)]+$')

AUTHOR_FIELDS = ('creator', 'author', 'dc:creator', 'dc_creator')
KEYWORD_FIELDS = ('dc:subject', 'dc_subject', 'categories')
DATE_STRUCT_FIELDS = ('published_parsed', 'updated_parsed')
DATE_STRING_FIELDS = ('isoDate', 'published', 'updated', 'pubDate', 'date')


def parse_item(entry, feed_type='RSS2'):
    """
    Returns dict with: external_id, title, abstract, url, publication_date,
    authors, keywords, doi.
    """
    entry = entry if hasattr(entry, 'get') else {}
    return {
        'external_id': _guarded(extract_id, entry, default=None) or str(uuid.uuid4()),
        'title': _guarded(extract_title, entry, default=''),
        'abstract': _guarded(extract_abstract, entry, default=''),
        'url': _guarded(extract_url, entry, default=''),
        'publication_date': _guarded(extract_date, entry, default=None) or _now(),
        'authors': _guarded(extract_authors, entry, default=[]),
        'keywords': _guarded(extract_keywords, entry, default=[]),
        'doi': _guarded(extract_doi_from_entry, entry, default=None),
    }


def _guarded(func, entry, default):
    try:
        return func(entry)
    except Exception as e:
        logger.debug(f"{func.__name__} failed on feed item: {e}")
        return default


def _now():
    return datetime.now(timezone.utc)


def _as_list(value):
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _text_of(value):
    """Plain string out of a str, (scheme, term) pair, {'name'|'term'|'value'|'href': ...} dict or None."""
    if value is None:
        return ''
    if isinstance(value, str):
        return value
    if isinstance(value, tuple):
        # feedparser exposes categories as (scheme, term) pairs
        return _text_of(value[-1]) if value else ''
    if hasattr(value, 'get'):
        for key in ('name', 'term', 'value', 'href'):
            if value.get(key):
                return str(value.get(key))
        return ''
    return str(value)


def extract_id(entry):
    for key in ('guid', 'id', 'link'):
        value = _text_of(entry.get(key)).strip()
        if value:
            return value
    return None


def extract_title(entry):
    return clean_text(_text_of(entry.get('title')))


def extract_abstract(entry):
    candidates = [entry.get('contentSnippet')]
    candidates.extend(_text_of(c) for c in _as_list(entry.get('content')))
    candidates.extend([entry.get('summary'), entry.get('description')])
    for candidate in candidates:
        text = clean_text(_text_of(candidate))
        if text:
            return text
    return ''


def extract_url(entry):
    link = entry.get('link')
    if isinstance(link, str):
        return link.strip()
    if link is not None:
        return _text_of(link).strip()
    for candidate in _as_list(entry.get('links')):
        href = candidate.get('href') if hasattr(candidate, 'get') else None
        if href:
            return href.strip()
    return ''


def extract_date(entry):
    for key in DATE_STRUCT_FIELDS:
        struct = entry.get(key)
        if struct:
            try:
                return datetime.fromtimestamp(calendar.timegm(struct), tz=timezone.utc)
            except (TypeError, ValueError, OverflowError):
                continue

    for key in DATE_STRING_FIELDS:
        parsed = parse_date_string(entry.get(key))
        if parsed:
            return parsed
    return None


def parse_date_string(value):
    """ISO-8601 or RFC-2822 string -> aware UTC datetime, None when unparseable."""
    if not value or not isinstance(value, str):
        return None
    value = value.strip()

    parsed = None
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        try:
            parsed = parsedate_to_datetime(value)
        except (TypeError, ValueError, IndexError):
            return None
    if parsed is None:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def extract_authors(entry):
    # feedparser keeps every dc:creator in document order under 'authors' but
    # leaves only the last one in 'author', so the list decides the order.
    raw = [_text_of(v) for v in _as_list(entry.get('authors'))]
    for key in AUTHOR_FIELDS:
        raw.extend(_text_of(v) for v in _as_list(entry.get(key)))
    return unique_stripped(raw)


def extract_keywords(entry):
    raw = []
    for key in KEYWORD_FIELDS:
        raw.extend(_text_of(v) for v in _as_list(entry.get(key)))
    raw.extend(_text_of(v) for v in _as_list(entry.get('tags')))
    return unique_stripped(raw)


def extract_doi_from_entry(entry):
    fields = [
        entry.get('title'),
        entry.get('content'),
        entry.get('contentSnippet'),
        entry.get('summary'),
        entry.get('link'),
        entry.get('guid') or entry.get('id'),
        entry.get('prism:doi') or entry.get('prism_doi'),
        entry.get('dc:identifier') or entry.get('dc_identifier'),
    ]
    parts = []
    for value in fields:
        parts.extend(_text_of(v) for v in _as_list(value))
    return extract_doi(' '.join(p for p in parts if p))


def extract_doi(text):
    """First DOI found in text, trailing punctuation removed. None when absent."""
    if not text:
        return None
    for pattern in DOI_PATTERNS:
        match = pattern.search(text)
        if match:
            doi = DOI_TRAILING.sub('', match.group(1).strip())
            if doi:
                return doi
    return None
