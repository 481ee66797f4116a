"""
Per-User Analysis Cache

Caches one user's AI fit analysis of one university. A stored analysis
is usable only when all three hold:
- age <= TTL
- every required top-level section is present
- it is not a placeholder built while the user had no profile, now
  that the user has one

Profile changes hard-invalidate every row for the user through
invalidate_all(). One instance serves one analysis kind (discovery or
shortlist), each with its own required sections.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from counsellor.cache.base import SqlCache, CacheIOError, as_utc
from counsellor.database.models import AnalysisRecord
from counsellor.scoring.confidence import has_value

logger = logging.getLogger(__name__)


class AnalysisCache(SqlCache):
    """
    Analysis cache on the ai_analysis_cache table.

    Usage:
        cache = AnalysisCache(factory, "discovery", DISCOVERY_SECTIONS, CacheTTL.DISCOVERY_ANALYSIS)
        analysis = await cache.lookup(user_id, university_id, has_profile=True)
    """

    def __init__(
        self,
        session_factory,
        kind: str,
        required_sections: Sequence[str],
        ttl: timedelta,
        **kwargs,
    ):
        super().__init__(session_factory, **kwargs)
        self.kind = kind
        self.required_sections = tuple(required_sections)
        self.ttl = ttl

    def is_complete(self, analysis: Any) -> bool:
        """All required sections present and non-empty."""
        if not isinstance(analysis, Mapping):
            return False
        return all(has_value(analysis.get(section)) for section in self.required_sections)

    async def lookup(
        self,
        user_id: str,
        university_id: str,
        *,
        has_profile: bool,
    ) -> Optional[Dict[str, Any]]:
        """
        Get a usable cached analysis.

        Args:
            user_id: Owning user
            university_id: Analysed university
            has_profile: Whether the user has a profile now; stored
                placeholders are bypassed when True

        Returns:
            Analysis dict, or None on miss/stale/incomplete/placeholder/error
        """
        if not self.enabled:
            return None

        try:
            row = await self._run("lookup", self._get_sync, str(user_id), str(university_id))
        except CacheIOError as e:
            self._record_error("lookup", e)
            self._stats["misses"] += 1
            return None

        usable, reason = self._check(row, has_profile)
        if not usable:
            self._stats["misses"] += 1
            logger.info(f"{self.kind} analysis miss for {user_id}/{university_id} ({reason})")
            return None

        self._stats["hits"] += 1
        logger.info(f"{self.kind} analysis cache hit for {user_id}/{university_id}")
        return row["analysis"]

    async def store(
        self,
        user_id: str,
        university_id: str,
        analysis: Mapping[str, Any],
        *,
        is_placeholder: bool = False,
        source: Optional[str] = None,
    ) -> bool:
        """
        Upsert an analysis, fully replacing any previous row.

        Returns:
            True if written, False on storage failure
        """
        if not isinstance(analysis, Mapping):
            raise TypeError("analysis must be a mapping")
        if not self.enabled:
            return False

        try:
            await self._run(
                "store", self._store_sync,
                str(user_id), str(university_id), dict(analysis),
                is_placeholder, source, self.now(),
            )
        except CacheIOError as e:
            self._record_error("store", e)
            return False

        self._stats["writes"] += 1
        logger.debug(
            f"Cached {self.kind} analysis for {user_id}/{university_id}"
            f"{' (placeholder)' if is_placeholder else ''}"
        )
        return True

    async def invalidate_all(self, user_id: str) -> Optional[int]:
        """
        Delete every row of this kind for a user.

        Returns:
            Number of deleted rows, or None when the store failed
        """
        try:
            deleted = await self._run("invalidate", self._delete_user_sync, str(user_id))
        except CacheIOError as e:
            self._record_error("invalidate", e)
            return None

        logger.info(f"Invalidated {deleted} {self.kind} analyses for user {user_id}")
        return deleted

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        return {
            "enabled": self.enabled,
            "backend": self.backend,
            "kind": self.kind,
            **self.counters(),
        }

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _check(self, row: Optional[Dict[str, Any]], has_profile: bool) -> Tuple[bool, str]:
        if row is None:
            return False, "not cached"
        if self.now() - row["analyzed_at"] > self.ttl:
            return False, "stale"
        if not self.is_complete(row["analysis"]):
            return False, "incomplete"
        if row["is_placeholder"] and has_profile:
            return False, "placeholder superseded by profile"
        return True, "hit"

    def _find(self, db: Session, user_id: str, university_id: str) -> Optional[AnalysisRecord]:
        return db.query(AnalysisRecord).filter(
            AnalysisRecord.user_id == user_id,
            AnalysisRecord.university_id == university_id,
            AnalysisRecord.kind == self.kind,
        ).first()

    def _get_sync(self, db: Session, user_id: str, university_id: str) -> Optional[Dict[str, Any]]:
        record = self._find(db, user_id, university_id)
        if record is None:
            return None
        return {
            "analysis": record.analysis,
            "is_placeholder": bool(record.is_placeholder),
            "analyzed_at": as_utc(record.analyzed_at),
        }

    def _store_sync(
        self,
        db: Session,
        user_id: str,
        university_id: str,
        analysis: Dict[str, Any],
        is_placeholder: bool,
        source: Optional[str],
        now: datetime,
    ) -> None:
        existing = self._find(db, user_id, university_id)
        if existing:
            existing.analysis = analysis
            existing.is_placeholder = is_placeholder
            existing.source = source
            existing.analyzed_at = now
        else:
            db.add(AnalysisRecord(
                user_id=user_id,
                university_id=university_id,
                kind=self.kind,
                analysis=analysis,
                is_placeholder=is_placeholder,
                source=source,
                analyzed_at=now,
            ))

    def _delete_user_sync(self, db: Session, user_id: str) -> int:
        return db.query(AnalysisRecord).filter(
            AnalysisRecord.user_id == user_id,
            AnalysisRecord.kind == self.kind,
        ).delete(synchronize_session=False)
