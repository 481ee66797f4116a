"""
University Enrichment Cache

Read-through/write-through cache of enriched university facts keyed by
normalised (name, country).

Freshness is tiered by trust (see CacheTTL.for_enrichment):
- verified rows: 30 days
- MANUAL rows: 14 days
- machine-enriched rows: 7 days

Confidence is recomputed on every write and on verification, never
copied from an older row. Storage failures degrade to a miss or a
failed write; they never reach the caller.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple

from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from counsellor.cache.base import SqlCache, CacheIOError, as_utc
from counsellor.cache.config import CacheTTL
from counsellor.database.models import EnrichmentRecord, normalize_key
from counsellor.scoring.confidence import calculate_confidence

logger = logging.getLogger(__name__)

CACHE_META_KEY = "_cache_meta"


def clean_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy of payload without cache metadata."""
    return {k: v for k, v in payload.items() if k != CACHE_META_KEY}


class EnrichmentCache(SqlCache):
    """
    Enrichment cache on the enrichment_cache table.

    Usage:
        cache = EnrichmentCache(session_factory)
        cached = await cache.lookup("TU Munich", "Germany")
        if cached is None:
            await cache.store("TU Munich", "Germany", payload, source="GEMINI")
    """

    table = EnrichmentRecord.__tablename__

    # =========================================================================
    # PUBLIC API (never raises for storage failures)
    # =========================================================================

    async def lookup(self, name: str, country: str) -> Optional[Dict[str, Any]]:
        """
        Get a fresh cached enrichment.

        Bumps access stats on a hit.

        Returns:
            Payload plus `_cache_meta`, or None on miss/stale/error
        """
        if not self.enabled:
            return None

        name_key, country_key = normalize_key(name), normalize_key(country)
        try:
            result, reason = await self._run(
                "lookup", self._lookup_sync, name_key, country_key, self.now()
            )
        except CacheIOError as e:
            self._record_error("lookup", e)
            self._stats["misses"] += 1
            return None

        if result is None:
            self._stats["misses"] += 1
            logger.info(f"Enrichment cache miss for {name}, {country} ({reason})")
            return None

        self._stats["hits"] += 1
        meta = result[CACHE_META_KEY]
        logger.info(
            f"Enrichment cache hit for {name}, {country} "
            f"(confidence: {meta['confidence_score']})"
        )
        return result

    async def store(
        self,
        name: str,
        country: str,
        payload: Mapping[str, Any],
        source: str = "AI",
    ) -> bool:
        """
        Upsert an enrichment, fully replacing any previous row.

        Confidence is recomputed, verification cleared, and access count
        reset to 1.

        Returns:
            True if written, False on storage failure
        """
        if not isinstance(payload, Mapping):
            raise TypeError("payload must be a mapping")
        if not self.enabled:
            return False

        data = clean_payload(payload)
        confidence = calculate_confidence(data, source, is_verified=False)
        try:
            await self._run(
                "store", self._store_sync,
                name.strip(), country.strip(), data, source, confidence, self.now(),
            )
        except CacheIOError as e:
            self._record_error("store", e)
            return False

        self._stats["writes"] += 1
        logger.debug(f"Cached enrichment for {name}, {country} ({source}, confidence {confidence})")
        return True

    async def mark_verified(
        self,
        name: str,
        country: str,
        verified_by: Optional[str] = None,
    ) -> bool:
        """
        Mark a cached row as admin-verified and rescore it.

        Returns:
            True if a row was updated
        """
        try:
            updated = await self._run(
                "verify", self._verify_sync,
                normalize_key(name), normalize_key(country), verified_by, self.now(),
            )
        except CacheIOError as e:
            self._record_error("verify", e)
            return False

        if updated:
            logger.info(f"Marked {name}, {country} verified (by {verified_by or 'unknown'})")
        else:
            logger.warning(f"Cannot verify {name}, {country}: not cached")
        return updated

    async def sweep_expired(self) -> Optional[int]:
        """
        Delete unverified rows older than the longest TTL tier.

        Verified rows are never removed.

        Returns:
            Number of deleted rows, or None when the store failed
        """
        cutoff = self.now() - CacheTTL.longest_enrichment()
        try:
            deleted = await self._run("sweep", self._sweep_sync, cutoff)
        except CacheIOError as e:
            self._record_error("sweep", e)
            return None

        logger.info(f"Expired enrichment entries cleared: {deleted}")
        return deleted

    async def get_stats(self) -> Dict[str, Any]:
        """Table counts plus in-process counters. Zeros on failure."""
        try:
            table_stats = await self._run("stats", self._stats_sync)
        except CacheIOError as e:
            self._record_error("stats", e)
            table_stats = {"total_cached": 0, "verified_count": 0, "average_access_count": 0}

        return {
            "enabled": self.enabled,
            "backend": self.backend,
            **table_stats,
            **self.counters(),
        }

    async def health_check(self) -> Dict[str, Any]:
        """
        Simple health check.

        Just verifies we can query the table.
        """
        try:
            count = await self._run("health", self._count_sync)
            return {
                "healthy": True,
                "status": "connected",
                "cached_entries": count,
                "backend": self.backend,
            }
        except CacheIOError as e:
            return {
                "healthy": False,
                "status": "error",
                "error": str(e),
                "backend": self.backend,
            }

    # =========================================================================
    # SYNC HELPERS (run in a worker thread, raise SQLAlchemy errors)
    # =========================================================================

    @staticmethod
    def _find(db: Session, name_key: str, country_key: str) -> Optional[EnrichmentRecord]:
        return db.query(EnrichmentRecord).filter(
            EnrichmentRecord.name_key == name_key,
            EnrichmentRecord.country_key == country_key,
        ).first()

    def _lookup_sync(
        self,
        db: Session,
        name_key: str,
        country_key: str,
        now: datetime,
    ) -> Tuple[Optional[Dict[str, Any]], str]:
        record = self._find(db, name_key, country_key)
        if record is None:
            return None, "not cached"

        ttl = CacheTTL.for_enrichment(record.source, record.is_verified)
        age = now - as_utc(record.created_at)
        if age > ttl:
            return None, f"expired, age {age.days} days"

        data = record.enriched_data or {}
        if "error" in data:
            # Ignore cached error, retry enrichment
            return None, "cached error record"

        record.access_count = (record.access_count or 0) + 1
        record.last_accessed_at = now
        return self._to_result(record), "hit"

    def _store_sync(
        self,
        db: Session,
        name: str,
        country: str,
        data: Dict[str, Any],
        source: str,
        confidence: float,
        now: datetime,
    ) -> None:
        name_key, country_key = normalize_key(name), normalize_key(country)
        existing = self._find(db, name_key, country_key)

        values = dict(
            university_name=name,
            country=country,
            enriched_data=data,
            confidence_score=confidence,
            source=source,
            is_verified=False,
            verified_by=None,
            verified_at=None,
            created_at=now,
            last_accessed_at=now,
            access_count=1,
        )
        if existing:
            for column, value in values.items():
                setattr(existing, column, value)
        else:
            db.add(EnrichmentRecord(name_key=name_key, country_key=country_key, **values))

    def _verify_sync(
        self,
        db: Session,
        name_key: str,
        country_key: str,
        verified_by: Optional[str],
        now: datetime,
    ) -> bool:
        record = self._find(db, name_key, country_key)
        if record is None:
            return False

        record.is_verified = True
        record.verified_by = verified_by
        record.verified_at = now
        record.confidence_score = calculate_confidence(
            record.enriched_data or {}, record.source, is_verified=True
        )
        return True

    @staticmethod
    def _sweep_sync(db: Session, cutoff: datetime) -> int:
        return db.query(EnrichmentRecord).filter(
            EnrichmentRecord.is_verified == False,  # noqa: E712
            EnrichmentRecord.created_at < cutoff,
        ).delete(synchronize_session=False)

    @staticmethod
    def _count_sync(db: Session) -> int:
        return db.query(func.count(EnrichmentRecord.id)).scalar() or 0

    @staticmethod
    def _stats_sync(db: Session) -> Dict[str, int]:
        total = db.query(func.count(EnrichmentRecord.id)).scalar() or 0
        verified = db.query(func.count(EnrichmentRecord.id)).filter(
            EnrichmentRecord.is_verified == True,  # noqa: E712
        ).scalar() or 0
        top = db.query(EnrichmentRecord.access_count).order_by(
            desc(EnrichmentRecord.access_count)
        ).limit(10).all()

        average = round(sum(row[0] or 0 for row in top) / len(top)) if top else 0
        return {
            "total_cached": total,
            "verified_count": verified,
            "average_access_count": average,
        }

    @staticmethod
    def _to_result(record: EnrichmentRecord) -> Dict[str, Any]:
        created_at = as_utc(record.created_at)
        return {
            **(record.enriched_data or {}),
            CACHE_META_KEY: {
                "cached": True,
                "confidence_score": float(record.confidence_score),
                "source": record.source,
                "is_verified": bool(record.is_verified),
                "created_at": created_at.isoformat() if created_at else None,
                "access_count": record.access_count,
            },
        }
