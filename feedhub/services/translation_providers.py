"""
Translation backends tried in order by the TranslationManager.

Each provider declares the languages it handles and whether it can run right
now; the manager decides at call time which ones to try.
"""

import logging
import re
from contextlib import nullcontext

import requests

logger = logging.getLogger(__name__)

PT_TO_EN = {
    'resumo': 'abstract',
    'artigo': 'article',
    'pesquisa': 'research',
    'estudo': 'study',
    'análise': 'analysis',
    'desenvolvimento': 'development',
    'sistema': 'system',
    'método': 'method',
    'resultado': 'result',
    'resultados': 'results',
    'conclusão': 'conclusion',
    'objetivo': 'objective',
    'metodologia': 'methodology',
    'dados': 'data',
    'informação': 'information',
    'tecnologia': 'technology',
    'inovação': 'innovation',
    'processo': 'process',
    'modelo': 'model',
    'aplicação': 'application',
    'implementação': 'implementation',
    'avaliação': 'evaluation',
    'tratamento': 'treatment',
    'comportamento': 'behavior',
    'paciente': 'patient',
    'pacientes': 'patients',
    'grupo': 'group',
    'controle': 'control',
    'intervenção': 'intervention',
    'terapia': 'therapy',
    'educação': 'education',
    'aprendizagem': 'learning',
    'ensino': 'teaching',
    'escola': 'school',
    'estudantes': 'students',
    'crianças': 'children',
    'família': 'family',
    'saúde': 'health',
    'trabalho': 'work',
    'desempenho': 'performance',
    'treinamento': 'training',
}

EN_TO_PT = {
    'abstract': 'resumo',
    'article': 'artigo',
    'research': 'pesquisa',
    'study': 'estudo',
    'analysis': 'análise',
    'development': 'desenvolvimento',
    'system': 'sistema',
    'method': 'método',
    'result': 'resultado',
    'results': 'resultados',
    'conclusion': 'conclusão',
    'objective': 'objetivo',
    'data': 'dados',
    'information': 'informação',
    'technology': 'tecnologia',
    'process': 'processo',
    'application': 'aplicação',
    'evaluation': 'avaliação',
    'treatment': 'tratamento',
    'behavior': 'comportamento',
    'patient': 'paciente',
    'patients': 'pacientes',
    'group': 'grupo',
    'control': 'controle',
    'significant': 'significativo',
    'effective': 'eficaz',
    'improvement': 'melhoria',
    'findings': 'achados',
    'approach': 'abordagem',
    'technique': 'técnica',
    'program': 'programa',
    'training': 'treinamento',
    'education': 'educação',
    'learning': 'aprendizagem',
    'students': 'estudantes',
    'performance': 'desempenho',
    'health': 'saúde',
    'quality': 'qualidade',
    'family': 'família',
    'children': 'crianças',
    'community': 'comunidade',
    'experience': 'experiência',
    'problem': 'problema',
    'solution': 'solução',
}


class TranslationProviderError(Exception):
    def __init__(self, provider, message):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class TranslationProvider:
    name = 'base'
    supported_languages = ()

    def is_available(self):
        return True

    def supports(self, source_language, target_language):
        return (source_language in self.supported_languages
                and target_language in self.supported_languages)

    def translate(self, text, source_language, target_language):
        """Return (translated_text, confidence). Raise TranslationProviderError on failure."""
        raise NotImplementedError


class RemoteAPIProvider(TranslationProvider):
    """Google-Translate-compatible JSON endpoint."""

    name = 'google-translate'
    supported_languages = ('en', 'pt', 'es', 'fr', 'de', 'it', 'ja', 'ko', 'zh', 'ar', 'ru')
    confidence = 0.9

    def __init__(self, api_key=None, api_url=None, timeout=10, http_semaphore=None):
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout
        self.http_semaphore = http_semaphore

    def is_available(self):
        return bool(self.api_key and self.api_url)

    def translate(self, text, source_language, target_language):
        if not self.is_available():
            raise TranslationProviderError(self.name, 'API key not configured')

        payload = {
            'q': text,
            'source': source_language,
            'target': target_language,
            'format': 'text',
        }
        guard = self.http_semaphore if self.http_semaphore is not None else nullcontext()
        try:
            with guard:
                resp = requests.post(
                    self.api_url,
                    params={'key': self.api_key},
                    json=payload,
                    timeout=self.timeout,
                )
        except requests.RequestException as e:
            raise TranslationProviderError(self.name, f"request failed: {e}") from e

        if not 200 <= resp.status_code < 300:
            raise TranslationProviderError(self.name, f"HTTP {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as e:
            raise TranslationProviderError(self.name, 'malformed JSON response') from e

        translated = self._first_translation(data)
        if translated is None:
            raise TranslationProviderError(self.name, 'response has no translations')

        logger.info(
            f"Remote translation {source_language}->{target_language}: "
            f"{len(text)} -> {len(translated)} chars"
        )
        return translated, self.confidence

    @staticmethod
    def _first_translation(data):
        if not isinstance(data, dict):
            return None
        body = data.get('data') if isinstance(data.get('data'), dict) else data
        translations = body.get('translations')
        if not isinstance(translations, list) or not translations:
            return None
        first = translations[0]
        if not isinstance(first, dict) or not isinstance(first.get('translatedText'), str):
            return None
        return first['translatedText']


class DictionaryProvider(TranslationProvider):
    """Whole-word glossary substitution. Always available, low confidence."""

    name = 'basic-translation'
    supported_languages = ('en', 'pt')
    confidence = 0.6
    passthrough_confidence = 0.5

    GLOSSARIES = {
        ('pt', 'en'): PT_TO_EN,
        ('en', 'pt'): EN_TO_PT,
    }

    def __init__(self):
        self._patterns = {
            pair: [
                (re.compile(rf'\b{re.escape(src)}\b', re.IGNORECASE), dst)
                for src, dst in glossary.items()
            ]
            for pair, glossary in self.GLOSSARIES.items()
        }

    def translate(self, text, source_language, target_language):
        patterns = self._patterns.get((source_language, target_language))
        if not patterns:
            # Only reachable by direct callers: the manager skips unsupported pairs
            # and returns early when source equals target.
            return text, self.passthrough_confidence

        translated = text
        for pattern, replacement in patterns:
            translated = pattern.sub(replacement, translated)
        return translated, self.confidence


class LocalModelProvider(TranslationProvider):
    """On-device model slot. No model ships with this service, so it never runs."""

    name = 'ai-local'
    supported_languages = ('en', 'pt', 'es')

    def __init__(self, model_name='facebook/nllb-200-distilled-600M'):
        self.model_name = model_name

    def is_available(self):
        return False

    def translate(self, text, source_language, target_language):
        raise TranslationProviderError(self.name, 'local translation model is disabled')
