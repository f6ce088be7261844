import logging
import threading
from dataclasses import dataclass, asdict
from time import perf_counter
from typing import Optional

from feedhub.services.translation_providers import (
    DictionaryProvider,
    LocalModelProvider,
    RemoteAPIProvider,
)
from feedhub.utils.hashing import translation_cache_key

logger = logging.getLogger(__name__)

MIN_CONFIDENCE_THRESHOLD = 0.8
LOW_CONFIDENCE_WARNING = 'low confidence translation, may contain errors'
FAILED_WARNING = 'translation failed, showing original text'


@dataclass
class TranslationResult:
    translated_text: str
    source_language: str
    target_language: str
    confidence: float
    provider: str
    from_cache: bool = False
    processing_time_ms: float = 0.0
    is_translated: bool = False
    fallback_used: bool = False
    warning: Optional[str] = None

    def to_dict(self):
        return asdict(self)


def _empty_stats():
    return {'attempts': 0, 'successes': 0, 'failures': 0, 'skipped': 0, 'total_time_ms': 0.0}


class TranslationManager:
    """
    Translates text through an ordered provider chain.

    The first provider that succeeds wins; its result is cached. When the whole
    chain fails the original text comes back with a warning, never an exception.
    """

    def __init__(self, providers, detector, cache=None, default_target='en', cache_ttl=None):
        self.providers = list(providers)
        self.detector = detector
        self.cache = cache
        self.default_target = default_target
        self.cache_ttl = cache_ttl
        self._stats = {p.name: _empty_stats() for p in self.providers}
        self._stats_lock = threading.Lock()

    @classmethod
    def from_config(cls, config, detector, cache=None, http_semaphore=None):
        providers = [
            RemoteAPIProvider(
                api_key=config.get('TRANSLATE_API_KEY'),
                api_url=config.get('TRANSLATE_API_URL'),
                timeout=config.get('TRANSLATE_TIMEOUT', 10),
                http_semaphore=http_semaphore,
            ),
            DictionaryProvider(),
            LocalModelProvider(),
        ]
        return cls(
            providers,
            detector,
            cache=cache,
            default_target=config.get('TRANSLATION_DEFAULT_TARGET', 'en'),
            cache_ttl=config.get('TRANSLATION_CACHE_TTL'),
        )

    def provider_order(self, preferred_provider=None):
        """Default chain excludes the local model unless it is explicitly preferred."""
        default = [p for p in self.providers if p.name != LocalModelProvider.name]
        if not preferred_provider:
            return default
        preferred = [p for p in self.providers if p.name == preferred_provider]
        return preferred + [p for p in default if p.name != preferred_provider]

    def translate(self, text, target_language=None, source_language=None, preferred_provider=None):
        started = perf_counter()
        target = target_language or self.default_target

        if not text or not text.strip():
            return TranslationResult(
                translated_text=text or '',
                source_language='unknown',
                target_language=target,
                confidence=0.0,
                provider='none',
            )

        try:
            return self._translate(text, target, source_language, preferred_provider, started)
        except Exception as e:
            logger.error(f"Translation failed unexpectedly: {e}", exc_info=True)
            return TranslationResult(
                translated_text=text,
                source_language=source_language or 'unknown',
                target_language=target,
                confidence=0.0,
                provider='none',
                processing_time_ms=_elapsed_ms(started),
                warning=FAILED_WARNING,
            )

    def _translate(self, text, target, source_language, preferred_provider, started):
        source = source_language or self.detector.detect(text)

        if source == target:
            return TranslationResult(
                translated_text=text,
                source_language=source,
                target_language=target,
                confidence=1.0,
                provider='none',
                processing_time_ms=_elapsed_ms(started),
            )

        key = translation_cache_key(text, source, target)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug(f"Translation cache hit ({cached['provider']})")
                return TranslationResult(
                    translated_text=cached['translated_text'],
                    source_language=source,
                    target_language=target,
                    confidence=cached['confidence'],
                    provider=cached['provider'],
                    from_cache=True,
                    processing_time_ms=_elapsed_ms(started),
                    is_translated=True,
                    warning=_confidence_warning(cached['confidence']),
                )

        tried = 0
        for provider in self.provider_order(preferred_provider):
            if not provider.is_available() or not provider.supports(source, target):
                self._record(provider.name, 'skipped')
                continue

            tried += 1
            t0 = perf_counter()
            try:
                translated, confidence = provider.translate(text, source, target)
            except Exception as e:
                self._record(provider.name, 'failures', _elapsed_ms(t0))
                logger.warning(f"Translation provider {provider.name} failed: {e}")
                continue

            self._record(provider.name, 'successes', _elapsed_ms(t0))
            confidence = max(0.0, min(1.0, float(confidence)))
            if self.cache is not None:
                self.cache.set(key, {
                    'translated_text': translated,
                    'confidence': confidence,
                    'provider': provider.name,
                    'source_language': source,
                }, ttl=self.cache_ttl)

            logger.info(
                f"Translated {source}->{target} with {provider.name} "
                f"(confidence {confidence:.2f})"
            )
            return TranslationResult(
                translated_text=translated,
                source_language=source,
                target_language=target,
                confidence=confidence,
                provider=provider.name,
                processing_time_ms=_elapsed_ms(started),
                is_translated=True,
                fallback_used=tried > 1,
                warning=_confidence_warning(confidence),
            )

        logger.error(f"All translation providers failed for {source}->{target}")
        return TranslationResult(
            translated_text=text,
            source_language=source,
            target_language=target,
            confidence=0.0,
            provider='none',
            processing_time_ms=_elapsed_ms(started),
            fallback_used=tried > 1,
            warning=FAILED_WARNING,
        )

    def _record(self, provider_name, outcome, elapsed_ms=0.0):
        with self._stats_lock:
            stats = self._stats.setdefault(provider_name, _empty_stats())
            if outcome == 'skipped':
                stats['skipped'] += 1
                return
            stats['attempts'] += 1
            stats[outcome] += 1
            stats['total_time_ms'] += elapsed_ms

    def provider_stats(self):
        with self._stats_lock:
            result = {}
            for name, stats in self._stats.items():
                entry = dict(stats)
                attempts = entry['attempts']
                successes = entry['successes']
                entry['success_rate'] = successes / attempts if attempts else 0.0
                entry['average_time_ms'] = entry['total_time_ms'] / attempts if attempts else 0.0
                result[name] = entry
            return result

    def available_providers(self):
        return {p.name: p.is_available() for p in self.providers}

    def reset_stats(self):
        with self._stats_lock:
            self._stats = {p.name: _empty_stats() for p in self.providers}

    def clear_cache(self):
        if self.cache is None:
            return 0
        removed = self.cache.invalidate_by_pattern('translation:')
        logger.info(f"Translation cache cleared ({removed} entries)")
        return removed


def _elapsed_ms(started):
    return (perf_counter() - started) * 1000.0


def _confidence_warning(confidence):
    return LOW_CONFIDENCE_WARNING if confidence < MIN_CONFIDENCE_THRESHOLD else None
