import hashlib


def md5_hex(*parts):
    """md5 of the parts joined with '|'."""
    content = '|'.join(str(p) for p in parts)
    return hashlib.md5(content.encode('utf-8')).hexdigest()


def translation_cache_key(text, source_language, target_language):
    return f"translation:{md5_hex(text, source_language, target_language)}"


def rss_cache_key(feed_url, version=None):
    return f"rss:{feed_url}:{version or 'default'}"


def similar_articles_cache_key(article_id):
    return f"similar:{article_id}"
