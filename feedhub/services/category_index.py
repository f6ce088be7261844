import logging
from dataclasses import dataclass, field
from typing import List

import numpy as np

from feedhub.services.embedding_service import l2_normalize
from feedhub.utils.text import slugify

logger = logging.getLogger(__name__)

# Representative phrases per category. The embedding model is multilingual,
# so the phrases stay in the journals' language.
CATEGORY_EXAMPLES = {
    'Clinical': [
        'terapia comportamental cognitiva',
        'psicologia clínica',
        'tratamento de transtornos',
        'intervenção psicológica',
        'psicoterapia',
        'diagnóstico psicológico',
        'saúde mental',
        'clínica psicológica',
        'terapia individual',
        'avaliação clínica',
    ],
    'Education': [
        'educação especial',
        'ensino de crianças',
        'aprendizagem escolar',
        'pedagogia',
        'educação inclusiva',
        'métodos de ensino',
        'desenvolvimento educacional',
        'formação de professores',
        'tecnologia educacional',
        'currículo escolar',
    ],
    'Organizational': [
        'psicologia organizacional',
        'comportamento no trabalho',
        'gestão de equipes',
        'liderança empresarial',
        'desenvolvimento organizacional',
        'clima organizacional',
        'recursos humanos',
        'treinamento corporativo',
        'análise comportamental aplicada',
        'consultoria organizacional',
    ],
    'Research': [
        'pesquisa experimental',
        'metodologia científica',
        'análise de dados',
        'estudos longitudinais',
        'revisão sistemática',
        'meta-análise',
        'validação de instrumentos',
        'estudos de caso',
        'pesquisa qualitativa',
        'estatística aplicada',
    ],
    'Other': [
        'análise do comportamento',
        'psicologia experimental',
        'neurociência comportamental',
        'desenvolvimento humano',
        'comportamento animal',
        'psicologia social',
        'psicologia do desenvolvimento',
        'psicologia cognitiva',
        'psicologia evolutiva',
        'psicologia comparada',
    ],
}


@dataclass
class CategoryEmbedding:
    name: str
    slug: str
    centroid: np.ndarray
    examples: List[str] = field(default_factory=list)


def compute_centroid(vectors):
    """Average the vectors, then re-normalize the mean to unit length."""
    if len(vectors) == 0:
        raise ValueError("Cannot compute centroid of an empty set")
    mean = np.mean(np.stack([np.asarray(v, dtype=np.float32) for v in vectors]), axis=0)
    return l2_normalize(mean)


def cosine_similarity(a, b):
    """Dot product of unit vectors, clamped at 0."""
    a = np.asarray(a, dtype=np.float32)
    b = np.asarray(b, dtype=np.float32)
    if a.shape != b.shape:
        raise ValueError(f"Vector dimensions differ: {a.shape} vs {b.shape}")
    return max(0.0, min(1.0, float(np.dot(a, b))))


class CategoryIndex:
    """Category centroids, computed once from the example phrases."""

    def __init__(self, examples=None):
        self.examples = examples or CATEGORY_EXAMPLES
        self._categories = None

    def build(self, embedding_service):
        categories = []
        for name, phrases in self.examples.items():
            try:
                vectors = embedding_service.embed_texts(list(phrases))
                categories.append(CategoryEmbedding(
                    name=name,
                    slug=slugify(name),
                    centroid=compute_centroid(vectors),
                    examples=list(phrases),
                ))
            except Exception as e:
                logger.error(f"Failed to embed examples for category {name}: {e}")

        self._categories = categories
        logger.info(f"Computed centroids for {len(categories)} categories")
        return categories

    def is_ready(self):
        return bool(self._categories)

    @property
    def categories(self):
        if self._categories is None:
            raise RuntimeError("Category centroids have not been computed")
        return self._categories

    def similarities(self, vector):
        """[(CategoryEmbedding, similarity)] sorted best first."""
        scored = [(cat, cosine_similarity(vector, cat.centroid)) for cat in self.categories]
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return scored
