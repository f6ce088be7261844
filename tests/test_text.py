from feedhub.utils.text import (
    clean_text,
    truncate,
    normalize_author_name,
    slugify,
    unique_stripped,
)
from feedhub.utils.hashing import translation_cache_key, rss_cache_key


class TestText:
    def test_clean_text(self):
        assert clean_text('<p>A&amp;B</p>\n\n<br/>c') == 'A&B c'
        assert clean_text(None) == ''

    def test_truncate_keeps_words(self):
        assert truncate('one two three four', max_chars=9) == 'one two...'
        assert truncate('short', max_chars=10) == 'short'

    def test_normalize_author_name(self):
        assert normalize_author_name('  Silva,  Maria J. ') == 'silva maria j'
        assert normalize_author_name('') == ''

    def test_slugify(self):
        assert slugify('Análise do Comportamento') == 'analise-do-comportamento'
        assert slugify('Clinical') == 'clinical'
        assert slugify('  Too   many -- hyphens ') == 'too-many-hyphens'

    def test_unique_stripped(self):
        assert unique_stripped([' a', 'b', 'a ', '', None, 'B']) == ['a', 'b', 'B']


class TestCacheKeys:
    def test_translation_key_is_stable(self):
        key = translation_cache_key('texto', 'pt', 'en')
        assert key.startswith('translation:')
        assert key == translation_cache_key('texto', 'pt', 'en')
        assert key != translation_cache_key('texto', 'pt', 'es')

    def test_rss_key_default_version(self):
        assert rss_cache_key('https://x.example.com/rss') == 'rss:https://x.example.com/rss:default'
        assert rss_cache_key('https://x.example.com/rss', '"abc"') == 'rss:https://x.example.com/rss:"abc"'
