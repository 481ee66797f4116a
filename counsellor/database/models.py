"""
SQLAlchemy Models for the Counselling Cache Layer

Two keyed tables back the caches:
1. enrichment_cache - (university, country) -> enriched facts + confidence
2. ai_analysis_cache - (user, university, kind) -> per-user fit analysis

Keys are stored case-folded next to the display values so lookups match
regardless of how callers spell the name.
"""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    Column, String, Integer, Float, Boolean, DateTime,
    Index, UniqueConstraint, JSON,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in development/tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


def normalize_key(value: str) -> str:
    """Trimmed, case-folded lookup key."""
    return " ".join((value or "").split()).casefold()


# =============================================================================
# ENRICHMENT CACHE
# =============================================================================

class EnrichmentRecord(Base):
    """Enriched facts about one university in one country."""
    __tablename__ = "enrichment_cache"

    id = Column(String(36), primary_key=True, default=_new_id)

    # Identity
    name_key = Column(String(255), nullable=False)
    country_key = Column(String(100), nullable=False)
    university_name = Column(String(255), nullable=False)  # Display value
    country = Column(String(100), nullable=False)

    # Payload
    enriched_data = Column(JSONType, nullable=False, default=dict)
    confidence_score = Column(Float, nullable=False, default=0.0)
    source = Column(String(20), nullable=False, default="AI")  # VERIFIED, MANUAL, GEMINI, LLAMA, DEFAULT

    # Verification
    is_verified = Column(Boolean, nullable=False, default=False)
    verified_by = Column(String(255))
    verified_at = Column(DateTime(timezone=True))

    # Access tracking
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    last_accessed_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    access_count = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("name_key", "country_key", name="uq_enrichment_name_country"),
        Index("idx_enrichment_verified_created", "is_verified", "created_at"),
        Index("idx_enrichment_access_count", "access_count"),
    )

    def __repr__(self):
        return f"<EnrichmentRecord {self.university_name}, {self.country} ({self.source})>"


# =============================================================================
# ANALYSIS CACHE
# =============================================================================

class AnalysisRecord(Base):
    """One user's AI fit analysis of one university."""
    __tablename__ = "ai_analysis_cache"

    id = Column(String(36), primary_key=True, default=_new_id)

    user_id = Column(String(64), nullable=False)
    university_id = Column(String(255), nullable=False)
    kind = Column(String(20), nullable=False, default="discovery")  # discovery, shortlist

    analysis = Column(JSONType, nullable=False, default=dict)
    is_placeholder = Column(Boolean, nullable=False, default=False)  # Built without a profile
    source = Column(String(20))

    analyzed_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "university_id", "kind", name="uq_analysis_user_university_kind"),
        Index("idx_analysis_user", "user_id"),
    )

    def __repr__(self):
        return f"<AnalysisRecord {self.kind} {self.user_id}/{self.university_id}>"
