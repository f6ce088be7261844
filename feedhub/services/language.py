import logging
import re

logger = logging.getLogger(__name__)

# One list per language: function words, auxiliaries, domain terms, suffixes.
LANGUAGE_PATTERNS = {
    'en': [
        r'\b(the|and|or|of|to|in|for|with|on|by|from|about|through|during|between|among)\b',
        r'\b(that|this|these|those|not|are|is|was|were|will|would|can|could|should|has|had|have|being)\b',
        r'\b(article|abstract|research|study|analysis|development|system|method|result|conclusion|objective)\b',
        r'\b(significant|effective|important|successful|treatment|behavior|patient|group|control)\b',
    ],
    'pt': [
        r'\b(e|o|a|os|as|um|uma|de|da|do|das|dos|para|com|em|por|sobre|entre|durante|através)\b',
        r'\b(que|este|esta|estes|estas|não|são|está|estava|estavam|será|seria|pode|poderia|deve|tem|tinha|terá|sendo)\b',
        r'\b(artigo|resumo|pesquisa|estudo|análise|desenvolvimento|sistema|método|resultado|conclusão|objetivo)\b',
        r'\b(significativo|eficaz|importante|bem-sucedido|tratamento|comportamento|paciente|grupo|controle)\b',
        r'ção\b',
    ],
    'es': [
        r'\b(y|el|la|los|las|un|una|del|para|con|en|por|sobre|entre|durante)\b',
        r'\b(que|no|son|está|fueron|será|puede|debe|tiene|tenía|tendrá|siendo)\b',
        r'\b(artículo|resumen|investigación|estudio|análisis|desarrollo|sistema|método|resultado|conclusión)\b',
        r'ción\b',
    ],
}


class LanguageDetector:
    """Word-list language guess. Ties and empty input resolve to `default`."""

    def __init__(self, default='en', patterns=None):
        self.default = default
        self._compiled = {
            lang: [re.compile(p) for p in pats]
            for lang, pats in (patterns or LANGUAGE_PATTERNS).items()
        }

    @property
    def languages(self):
        return list(self._compiled)

    def scores(self, text):
        clean = (text or '').lower().strip()
        return {
            lang: sum(len(p.findall(clean)) for p in pats)
            for lang, pats in self._compiled.items()
        }

    def detect(self, text):
        if not text or not text.strip():
            return self.default

        scores = self.scores(text)
        best = max(scores.values())
        if best <= 0:
            return self.default

        leaders = [lang for lang, score in scores.items() if score == best]
        if len(leaders) > 1:
            logger.debug(f"Language tie {leaders} at {best}, assuming {self.default}")
            return self.default
        return leaders[0]
