"""
Batch Enrichment

Collapses many single-university enrichments into ONE model call:

1. Look every university up in the cache (windowed)
2. Send at most `batch_limit` misses in one indexed prompt
3. Map the returned array back by index
4. Fill gaps (omitted index, unparseable reply, provider outage,
   entries past the cap) with the country-based default
5. Write every fresh result through the cache independently

Never raises for upstream or storage failures.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from counsellor.cache.config import CacheConfig, get_cache_config
from counsellor.cache.enrichment_cache import EnrichmentCache
from counsellor.enrichment.defaults import (
    default_record,
    default_tuition,
    DEFAULT_ACCEPTANCE_RATE,
    DEFAULT_SOURCE,
)
from counsellor.enrichment.enricher import with_meta
from counsellor.enrichment.prompts import build_batch_prompt, BATCH_SYSTEM_PROMPT
from counsellor.llm.router import LLMRouter
from counsellor.output.parser import ResponseParser, EXPECT_ARRAY, map_by_index, parse_number
from counsellor.scoring.confidence import calculate_confidence
from counsellor.utils.concurrency import gather_in_windows, safe_result

logger = logging.getLogger(__name__)


@dataclass
class BatchSummary:
    """Counts for one batch run."""
    total: int = 0
    cached: int = 0
    enriched: int = 0
    defaulted: int = 0
    write_failures: int = 0
    source: Optional[str] = None
    errors: List[str] = field(default_factory=list)


def build_batch_record(name: str, country: str, element: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Turn one model array element into an enrichment record.

    Numbers like "~2000" are cleaned; missing ones fall back to the
    country defaults. Returns None when the element carries neither a
    tuition nor an acceptance estimate.
    """
    tuition = parse_number(element.get("tuition_estimate"))
    acceptance = parse_number(element.get("acceptance_rate"))
    rank = parse_number(element.get("ranking", element.get("rank")))

    if not tuition and not acceptance:
        return None

    return {
        "name": name,
        "country": country,
        "tuition_estimate": tuition or default_tuition(country),
        "acceptance_rate": acceptance or DEFAULT_ACCEPTANCE_RATE,
        "rank": rank or None,
    }


class BatchEnricher:
    """
    Enrich up to `batch_limit` universities with a single LLM call.

    Usage:
        batch = BatchEnricher(router, cache)
        records = await batch.enrich_batch([("Sorbonne University", "France"), ...])
    """

    def __init__(
        self,
        router: LLMRouter,
        cache: EnrichmentCache,
        config: Optional[CacheConfig] = None,
        provider: str = "GEMINI",
        parser: Optional[ResponseParser] = None,
    ):
        self.router = router
        self.cache = cache
        self.config = config or get_cache_config()
        self.provider = provider
        self.parser = parser or ResponseParser()
        self.last_summary: Optional[BatchSummary] = None

    @property
    def batch_limit(self) -> int:
        return self.config.batch_limit

    async def enrich_batch(self, items: Sequence[Tuple[str, str]]) -> List[Dict[str, Any]]:
        """
        Enrich many universities with one model call.

        Args:
            items: (name, country) pairs

        Returns:
            One payload (with `_cache_meta`) per input, in input order
        """
        items = [(name, country) for name, country in items]
        for name, country in items:
            if not name or not country:
                raise ValueError("every item needs a name and a country")

        summary = BatchSummary(total=len(items))
        self.last_summary = summary
        if not items:
            return []

        results: List[Optional[Dict[str, Any]]] = await self._lookup_all(items)
        summary.cached = sum(1 for r in results if r is not None)

        misses = [idx for idx, r in enumerate(results) if r is None]
        to_send, overflow = misses[:self.batch_limit], misses[self.batch_limit:]
        if overflow:
            logger.warning(
                f"Batch cap {self.batch_limit} exceeded; {len(overflow)} universities get defaults"
            )

        fresh: Dict[int, Tuple[Dict[str, Any], str]] = {}
        if to_send:
            fresh.update(await self._enrich_misses(items, to_send, summary))
        for idx in overflow:
            fresh[idx] = (default_record(*items[idx]), DEFAULT_SOURCE)

        summary.enriched = sum(1 for _, source in fresh.values() if source != DEFAULT_SOURCE)
        summary.defaulted = len(fresh) - summary.enriched

        await self._write_through(items, fresh, summary)

        for idx, (record, source) in fresh.items():
            confidence = calculate_confidence(record, source, is_verified=False)
            results[idx] = with_meta(
                record,
                cached=False,
                confidence=confidence,
                source=source,
                access_count=1,
            )

        logger.info(
            f"Batch enrichment complete: {summary.cached} cached, {summary.enriched} enriched, "
            f"{summary.defaulted} defaults (source: {summary.source or 'n/a'})"
        )
        return results

    async def _lookup_all(self, items: List[Tuple[str, str]]) -> List[Optional[Dict[str, Any]]]:
        factories = [
            (lambda n=name, c=country: self.cache.lookup(n, c))
            for name, country in items
        ]
        looked_up = await gather_in_windows(factories, window=self.config.concurrency)
        return [safe_result(looked_up, idx, None) for idx in range(len(items))]

    async def _enrich_misses(
        self,
        items: List[Tuple[str, str]],
        positions: List[int],
        summary: BatchSummary,
    ) -> Dict[int, Tuple[Dict[str, Any], str]]:
        batch_items = [items[idx] for idx in positions]
        defaults = {idx: (default_record(*items[idx]), DEFAULT_SOURCE) for idx in positions}

        logger.info(f"Batch enriching {len(batch_items)} universities with one AI call")
        response = await self.router.generate(
            [{"role": "user", "content": build_batch_prompt(batch_items)}],
            BATCH_SYSTEM_PROMPT,
            provider=self.provider,
        )
        if response.error:
            summary.errors.append(response.error_type or "provider_error")
            logger.warning("Batch enrichment unavailable; using defaults for all")
            return defaults

        summary.source = response.source_tag
        raw = response.data if isinstance(response.data, list) else response.text
        parsed = self.parser.parse(raw, expect=EXPECT_ARRAY)
        if not parsed.success:
            summary.errors.append(parsed.error.reason)
            logger.warning("Batch enrichment response unparseable; using defaults for all")
            return defaults

        by_position = map_by_index(parsed.value, len(batch_items), label="batch enrichment")

        fresh = dict(defaults)
        for offset, idx in enumerate(positions):
            element = by_position.get(offset)
            if element is None:
                continue
            record = build_batch_record(*items[idx], element)
            if record is not None:
                fresh[idx] = (record, response.source_tag)
        return fresh

    async def _write_through(
        self,
        items: List[Tuple[str, str]],
        fresh: Dict[int, Tuple[Dict[str, Any], str]],
        summary: BatchSummary,
    ) -> None:
        if not self.cache.enabled:
            return

        positions = sorted(fresh)
        factories = [
            (lambda i=idx: self.cache.store(*items[i], fresh[i][0], source=fresh[i][1]))
            for idx in positions
        ]
        written = await gather_in_windows(factories, window=self.config.concurrency)

        for idx, outcome in zip(positions, written):
            if outcome is not True:
                summary.write_failures += 1
                name, country = items[idx]
                logger.warning(f"Failed to cache batch enrichment for {name}, {country}")
