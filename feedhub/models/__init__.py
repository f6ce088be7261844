from feedhub.models.feed import Feed
from feedhub.models.article import Article, ArticleAuthor
from feedhub.models.category import Category, Author

__all__ = [
    'Feed',
    'Article', 'ArticleAuthor',
    'Category', 'Author',
]
