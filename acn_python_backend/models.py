"""
SQLAlchemy models for the Argument Confidence Network.

Postgres gets native UUID/JSONB/ARRAY columns; the generic JSON variants keep
the same models usable on SQLite for tests.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, Float, Boolean, Text, DateTime, JSON,
    ForeignKey, Index, CheckConstraint, UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB, ARRAY
from sqlalchemy.orm import declarative_base

Base = declarative_base()

JSONType = JSON().with_variant(JSONB(), "postgresql")
EmbeddingType = JSON().with_variant(ARRAY(Float), "postgresql")

INTERACTION_STATUSES = ("pending", "processing", "completed", "failed")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Argument(Base):
    """A scored claim extracted from user discourse"""
    __tablename__ = "arguments"

    # Identity
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Content
    content = Column(Text, nullable=False)
    summary = Column(Text)

    # Provenance (immutable)
    source_content_id = Column(Text, nullable=False)
    source_author_id = Column(Text, nullable=False)

    # For semantic search - text-embedding-3-small produces 1536 dimensions
    embedding = Column(EmbeddingType, nullable=False)

    # Confidence
    confidence = Column(Float, nullable=False, default=0.5)
    confidence_history = Column(JSONType, nullable=False, default=list)  # [{confidence, previous_confidence, timestamp, reason}]
    effective_confidence = Column(Float, nullable=False, default=0.5)

    # Quality (set once at creation)
    logical_validity = Column(Float, default=0.5)
    evidence_quality = Column(Float, default=0.5)
    coherence = Column(Float, default=0.5)
    entropy_score = Column(Float, default=5.0)

    # Clustering
    cluster_id = Column(UUID(as_uuid=True))
    is_cluster_head = Column(Boolean, nullable=False, default=False)

    # Engagement
    support_count = Column(Integer, nullable=False, default=0)
    refute_count = Column(Integer, nullable=False, default=0)
    citation_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('idx_arguments_cluster', 'cluster_id'),
        Index('idx_arguments_source_content', 'source_content_id'),
        Index('idx_arguments_confidence', 'confidence'),
        CheckConstraint('confidence >= 0.0 AND confidence <= 1.0', name='check_argument_confidence'),
        CheckConstraint('entropy_score >= 0.0 AND entropy_score <= 10.0', name='check_argument_entropy'),
    )

    def __repr__(self):
        return f"<Argument(id={self.id}, confidence={self.confidence})>"


class ConfidenceUpdate(Base):
    """Write-once audit row for every confidence change"""
    __tablename__ = "confidence_updates"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    argument_id = Column(UUID(as_uuid=True), ForeignKey('arguments.id', ondelete='CASCADE'), nullable=False)
    interaction_id = Column(UUID(as_uuid=True))

    old_confidence = Column(Float, nullable=False)
    new_confidence = Column(Float, nullable=False)
    reason = Column(Text, nullable=False)

    # Set only on propagated updates
    propagated_from = Column(UUID(as_uuid=True), ForeignKey('arguments.id', ondelete='SET NULL'))
    cosine_similarity = Column(Float)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index('idx_confidence_updates_argument', 'argument_id', 'created_at'),
        Index('idx_confidence_updates_propagated', 'propagated_from'),
    )


class FactClaim(Base):
    """A factual claim arguments can depend on"""
    __tablename__ = "fact_claims"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    claim = Column(Text, nullable=False)

    source_content_id = Column(Text)
    source_author_id = Column(Text)

    embedding = Column(EmbeddingType, nullable=False)

    confidence = Column(Float, nullable=False, default=0.5)
    confidence_history = Column(JSONType, nullable=False, default=list)

    citation_count = Column(Integer, nullable=False, default=0)
    challenge_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('idx_fact_claims_confidence', 'confidence'),
        CheckConstraint('confidence >= 0.0 AND confidence <= 1.0', name='check_fact_confidence'),
    )


class ArgumentFactLink(Base):
    """Weighted dependency of an argument on a fact claim"""
    __tablename__ = "argument_fact_links"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    argument_id = Column(UUID(as_uuid=True), ForeignKey('arguments.id', ondelete='CASCADE'), nullable=False)
    fact_claim_id = Column(UUID(as_uuid=True), ForeignKey('fact_claims.id', ondelete='CASCADE'), nullable=False)
    dependency_strength = Column(Float, nullable=False, default=1.0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint('argument_id', 'fact_claim_id', name='uq_argument_fact_link'),
        Index('idx_argument_fact_links_fact', 'fact_claim_id'),
        CheckConstraint(
            'dependency_strength >= 0.0 AND dependency_strength <= 1.0',
            name='check_dependency_strength'
        ),
    )


class AnalysisInteraction(Base):
    """One request/response cycle through the analysis pipeline"""
    __tablename__ = "analysis_interactions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Trigger
    trigger_content_id = Column(Text, nullable=False)
    trigger_reply_id = Column(Text)
    trigger_author_id = Column(Text, nullable=False)
    target_content = Column(Text, nullable=False)

    status = Column(Text, nullable=False, default="pending")

    # Results
    analysis_result = Column(JSONType)
    entropy_score = Column(Float)
    fallacies_found = Column(JSONType)
    arguments_referenced = Column(JSONType)

    # Reply
    response_content = Column(Text)
    response_content_id = Column(UUID(as_uuid=True))

    error_message = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at = Column(DateTime(timezone=True))

    __table_args__ = (
        Index('idx_analysis_interactions_status', 'status'),
        Index('idx_analysis_interactions_trigger', 'trigger_content_id'),
        Index('idx_analysis_interactions_author', 'trigger_author_id', 'created_at'),
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name='valid_interaction_status'
        ),
    )
