import logging
from dataclasses import dataclass, field, asdict
from typing import List, Optional

from feedhub.utils.text import slugify, truncate

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.3

# Keyword score is divided by this to look like a confidence. Ad hoc, tune freely.
KEYWORD_CONFIDENCE_DIVISOR = 10

CATEGORY_RULES = {
    'Clinical': [
        'terapia', 'therapy', 'treatment', 'intervention', 'tratamento',
        'behavioral therapy', 'cognitive', 'psychotherapy', 'psicoterapia',
        'clínica', 'clinica', 'patient', 'disorder', 'mental health',
    ],
    'Education': [
        'education', 'teaching', 'school', 'learning', 'educação', 'educacao',
        'student', 'classroom', 'academic', 'pedagogical', 'ensino', 'aprendizagem',
    ],
    'Organizational': [
        'organizational', 'workplace', 'management', 'organizacional', 'trabalho',
        'business', 'corporate', 'leadership', 'team', 'performance',
    ],
    'Research': [
        'experimental', 'experiment', 'research', 'pesquisa', 'metodologia',
        'analysis', 'análise', 'study', 'estudo', 'methodology',
    ],
    'Other': [
        'análise do comportamento', 'behavior analysis', 'psicologia',
        'psychology', 'comportamento', 'behavior', 'desenvolvimento',
    ],
}


@dataclass
class ClassificationResult:
    category: str
    slug: str
    confidence: float
    alternative_categories: List[dict] = field(default_factory=list)
    method: str = 'embedding'

    def to_dict(self):
        return asdict(self)


class KeywordClassifier:
    """Counts category terms in the text. Most hits wins, earlier category on ties."""

    def __init__(self, rules=None):
        self.rules = rules or CATEGORY_RULES

    def classify(self, title, abstract='', keywords=None) -> Optional[ClassificationResult]:
        try:
            text = f"{title or ''} {abstract or ''}".lower()
            keyword_text = ' '.join(str(k) for k in (keywords or [])).lower()
            full_text = f"{text} {keyword_text}"

            best_category = None
            best_score = 0
            for name, terms in self.rules.items():
                score = sum(1 for term in terms if term in full_text)
                if score > best_score:
                    best_category, best_score = name, score
        except Exception as e:
            logger.error(f"Keyword classification failed: {e}")
            return None

        if not best_category:
            return None

        logger.debug(f"Keyword classifier picked {best_category} ({best_score} hits)")
        return ClassificationResult(
            category=best_category,
            slug=slugify(best_category),
            confidence=best_score / KEYWORD_CONFIDENCE_DIVISOR,
            alternative_categories=[],
            method='keyword',
        )


class EmbeddingClassifier:
    """
    Picks the category whose centroid is closest to the article embedding.

    Falls back to KeywordClassifier when the model is not ready, when the best
    similarity is under the threshold, or on any embedding error.
    """

    def __init__(self, embedding_service, category_index, translator=None,
                 fallback=None, threshold=DEFAULT_THRESHOLD, max_alternatives=3,
                 max_text_length=1000, pivot_language='en', auto_translate=True):
        self.embedding_service = embedding_service
        self.category_index = category_index
        self.translator = translator
        self.fallback = fallback or KeywordClassifier()
        self.threshold = threshold
        self.max_alternatives = max_alternatives
        self.max_text_length = max_text_length
        self.pivot_language = pivot_language
        self.auto_translate = auto_translate

    def initialize(self):
        """Load the embedding model and compute category centroids."""
        self.embedding_service.initialize()
        self.category_index.build(self.embedding_service)

    def is_ready(self):
        return self.embedding_service.is_ready() and self.category_index.is_ready()

    def classify_article(self, title, abstract='', keywords=None) -> Optional[ClassificationResult]:
        keywords = keywords or []
        if not self.is_ready():
            logger.debug("Embedding classifier not ready, using keyword fallback")
            return self.fallback.classify(title, abstract, keywords)

        try:
            combined = self.combine_text(title, abstract, keywords)
            vector = self.embedding_service.embed(combined)
            ranked = self.category_index.similarities(vector)
        except Exception as e:
            logger.warning(f"Embedding classification failed for '{truncate(title or '', 100)}': {e}")
            return self.fallback.classify(title, abstract, keywords)

        if not ranked or ranked[0][1] < self.threshold:
            best = ranked[0][1] if ranked else 0.0
            logger.debug(f"Best similarity {best:.3f} under threshold {self.threshold}, using fallback")
            return self.fallback.classify(title, abstract, keywords)

        best_cat, best_sim = ranked[0]
        alternatives = [
            {'category': cat.name, 'slug': cat.slug, 'confidence': sim}
            for cat, sim in ranked[1:1 + self.max_alternatives]
        ]
        logger.info(f"Classified '{truncate(title or '', 100)}' as {best_cat.name} ({best_sim:.3f})")
        return ClassificationResult(
            category=best_cat.name,
            slug=best_cat.slug,
            confidence=best_sim,
            alternative_categories=alternatives,
            method='embedding',
        )

    def combine_text(self, title, abstract, keywords):
        parts = [title or '']
        if abstract:
            parts.append(self._pivot_abstract(abstract))
        if keywords:
            parts.append(' '.join(str(k) for k in keywords))
        combined = ' '.join(parts).strip()
        return combined[:self.max_text_length]

    def _pivot_abstract(self, abstract):
        if not (self.auto_translate and self.translator):
            return abstract
        try:
            result = self.translator.translate(abstract, target_language=self.pivot_language)
        except Exception as e:
            logger.warning(f"Abstract translation failed, using original: {e}")
            return abstract
        if result.is_translated:
            logger.debug(f"Abstract translated from {result.source_language} via {result.provider}")
            return result.translated_text
        return abstract

    def system_info(self):
        return {
            'is_ready': self.is_ready(),
            'threshold': self.threshold,
            'embedding': self.embedding_service.model_info(),
            'categories': len(self.category_index.categories) if self.category_index.is_ready() else 0,
        }
