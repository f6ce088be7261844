import re
import unicodedata
from html import unescape


def clean_text(html_or_text):
    """Strip HTML tags, decode entities and collapse whitespace."""
    text = re.sub(r'<[^>]+>', ' ', html_or_text or '')
    text = unescape(text)
    text = re.sub(r'\s+', ' ', text).strip()
    return text


def truncate(text, max_chars=200):
    """Truncate to max_chars keeping whole words."""
    if not text or len(text) <= max_chars:
        return text
    cut = text[:max_chars]
    last_space = cut.rfind(' ')
    if last_space > 0:
        cut = cut[:last_space]
    return cut + '...'


def strip_accents(text):
    decomposed = unicodedata.normalize('NFD', text or '')
    return ''.join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_author_name(name):
    """Lower-case, drop punctuation and collapse spaces. Dedup key for authors."""
    if not name:
        return ''
    normalized = re.sub(r'[^\w\s]', '', name.lower())
    return re.sub(r'\s+', ' ', normalized).strip()


def slugify(text):
    slug = strip_accents(text).lower()
    slug = re.sub(r'[^\w\s-]', '', slug)
    slug = re.sub(r'\s+', '-', slug.strip())
    return re.sub(r'-+', '-', slug)


def unique_stripped(values):
    """Trim values, drop empties, dedupe case-sensitively keeping first-seen order."""
    seen = set()
    result = []
    for value in values:
        if value is None:
            continue
        value = str(value).strip()
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result
