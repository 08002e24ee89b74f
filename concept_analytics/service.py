"""
Cached metrics payload for a live document store.

The loader is called only when the cached payload has expired; the concept
dictionary is re-read on each rebuild so curated updates show up with the next
refresh.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Mapping

from concept_analytics.aggregate import build_metrics_payload
from concept_analytics.cache import TimedCache
from concept_analytics.concepts import ConceptDictionary, load_concept_dictionary
from concept_analytics.config import Settings, load_settings
from concept_analytics.domain_dictionary import DomainDictionary, DynamicOverlay
from concept_analytics.lexicon import Lexicon, load_lexicon
from concept_analytics.records import build_records

logger = logging.getLogger(__name__)


class MetricsService:
    def __init__(
        self,
        loader: Callable[[], Iterable[Any]],
        settings: Settings | None = None,
        *,
        concept_dictionary: ConceptDictionary | None = None,
        domain: DomainDictionary | None = None,
        lexicon: Lexicon | None = None,
        file_metrics: Callable[[], Mapping[str, Mapping[str, Any]]] | None = None,
        committee: Callable[[], Mapping[str, Iterable[str]]] | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self.settings = settings or load_settings()
        self._loader = loader
        self._concept_dictionary = concept_dictionary
        self.lexicon = lexicon or load_lexicon(self.settings.lexicon_path)
        self.domain = domain or DomainDictionary(
            overlay=DynamicOverlay(self.settings.overlay_path, self.settings.overlay_reload_seconds)
        )
        self._file_metrics = file_metrics
        self._committee = committee
        cache_kwargs = {"clock": clock} if clock is not None else {}
        self.cache: TimedCache[dict[str, Any]] = TimedCache(self.settings.cache_ttl_seconds, **cache_kwargs)

    def concept_dictionary(self) -> ConceptDictionary:
        if self._concept_dictionary is not None:
            return self._concept_dictionary
        return load_concept_dictionary(self.settings.dictionary_path)

    def build(self) -> dict[str, Any]:
        documents = list(self._loader())
        records = build_records(
            documents,
            self.concept_dictionary(),
            self.domain,
            self.lexicon,
            file_metrics=self._file_metrics() if self._file_metrics else None,
            committee=self._committee() if self._committee else None,
        )
        logger.info("Built metrics for %d of %d documents", len(records), len(documents))
        return build_metrics_payload(records, domain=self.domain, lexicon=self.lexicon)

    def metrics(self) -> dict[str, Any]:
        return self.cache.get_or_compute(self.build)

    def refresh(self) -> dict[str, Any]:
        self.cache.invalidate()
        return self.metrics()
