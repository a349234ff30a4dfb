"""
Analysis Orchestrator

Drives one interaction through the pipeline:

    pending -> processing -> completed | failed

1. Embed the content and pull related arguments from the ledger
2. Run the heuristic analyzer (always available)
3. Optionally refine validity/evidence with the reasoning collaborator
4. Classify the stance of each related argument
5. Compose a markdown reply, store the result
6. Extract the analyzed content into the ledger (or cite a near-duplicate)

Only steps 2-5 can fail an interaction. Embedding, reasoning, fact lookup
and extraction problems are logged and degrade the result instead.
"""

import asyncio
import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from acn_python_backend.config import REASONING_TIMEOUT_SECONDS
from acn_python_backend.models import AnalysisInteraction
from acn_python_backend.services.argument_ledger import ArgumentLedger, ArgumentScores, UUIDLike, parse_uuid
from acn_python_backend.services.embedding_service import (
    EmbeddingService,
    EmbeddingUnavailableError,
    get_embedding_service,
)
from acn_python_backend.services.fact_claim_service import FactClaimService, FactMatch
from acn_python_backend.services.heuristic_analyzer import (
    generate_heuristic_summary,
    generate_recommendation,
    run_heuristics,
)
from acn_python_backend.services.mention_detector import MentionDetector
from acn_python_backend.services.reasoning_client import (
    ArgumentContext,
    ReasoningClient,
    ReasoningJudgment,
    get_reasoning_client,
)
from acn_python_backend.services.stance_classifier import LexicalStanceClassifier, StanceClassifier

logger = logging.getLogger(__name__)

MAX_CONTEXT_ARGUMENTS = 10
REASONING_CONTEXT_ARGUMENTS = 5
REASONING_CONTEXT_CHARS = 200
RELATED_PREVIEW_CHARS = 100
RELEVANT_FACTS_LIMIT = 3
DEDUP_SIMILARITY_THRESHOLD = 0.9
MAX_ARGUMENT_CHARS = 2000
MAX_SUMMARY_CHARS = 500
AUTHOR_HISTORY_LIMIT = 10

ALLOWED_TRANSITIONS = {
    "pending": {"processing"},
    "processing": {"completed", "failed"},
}


class InvalidTransitionError(ValueError):
    pass


class InteractionNotFoundError(LookupError):
    pass


@dataclass
class RelatedArgument:
    id: uuid.UUID
    content: str
    similarity: float
    stance: str


@dataclass
class AnalysisResult:
    entropy_score: float
    logical_validity: float
    evidence_quality: float
    fallacies_found: List[str]
    ethical_concerns: List[str]
    confidence: float
    summary: str
    recommendation: str
    related_arguments: List[RelatedArgument] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for related in data["related_arguments"]:
            related["id"] = str(related["id"])
        return data


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_response(result: AnalysisResult, facts: Sequence[FactMatch] = ()) -> str:
    lines = []

    if result.entropy_score >= 7:
        stability = "Constructive"
    elif result.entropy_score >= 4:
        stability = "Neutral"
    else:
        stability = "Potentially divisive"
    lines.append(f"**Stability Assessment:** {stability} ({result.entropy_score:.1f}/10)")

    if result.logical_validity >= 0.7:
        quality = "Strong"
    elif result.logical_validity >= 0.4:
        quality = "Moderate"
    else:
        quality = "Weak"
    lines.append(f"**Logical Quality:** {quality}")

    if result.evidence_quality >= 0.6:
        evidence = "Well-supported"
    elif result.evidence_quality >= 0.3:
        evidence = "Partially supported"
    else:
        evidence = "Needs more evidence"
    lines.append(f"**Evidence:** {evidence}")

    if result.fallacies_found:
        lines.append(f"**Potential Fallacies:** {', '.join(result.fallacies_found)}")

    if result.related_arguments:
        supporting = sum(1 for arg in result.related_arguments if arg.stance == "support")
        refuting = sum(1 for arg in result.related_arguments if arg.stance == "refute")
        lines.append(f"**Related Arguments:** {supporting} supporting, {refuting} challenging")

    if facts:
        lines.append("**Relevant Facts:**")
        for fact in facts:
            lines.append(f"- {fact.claim} (confidence: {fact.confidence:.2f})")

    lines.append("")
    lines.append(f"**Analysis:** {result.recommendation}")

    return "\n".join(lines)


class AnalysisOrchestrator:
    def __init__(
        self,
        db: AsyncSession,
        embedding_service: Optional[EmbeddingService] = None,
        reasoning_client: Optional[ReasoningClient] = None,
        stance_classifier: Optional[StanceClassifier] = None,
        mention_detector: Optional[MentionDetector] = None,
        reasoning_timeout: float = REASONING_TIMEOUT_SECONDS,
    ):
        self.db = db
        self.embedding_service = embedding_service or get_embedding_service()
        self._reasoning_client = reasoning_client
        self.stance_classifier = stance_classifier or LexicalStanceClassifier()
        self.mention_detector = mention_detector or MentionDetector()
        self.reasoning_timeout = reasoning_timeout

        self.ledger = ArgumentLedger(db, embedding_service=self.embedding_service)
        self.facts = FactClaimService(db, embedding_service=self.embedding_service)

    @property
    def reasoning_client(self) -> ReasoningClient:
        if self._reasoning_client is None:
            self._reasoning_client = get_reasoning_client()
        return self._reasoning_client

    # ------------------------------------------------------------------
    # Interaction lifecycle
    # ------------------------------------------------------------------

    async def submit_interaction(
        self,
        trigger_content: str,
        trigger_content_id: str,
        trigger_author_id: str,
        trigger_reply_id: Optional[str] = None,
    ) -> AnalysisInteraction:
        interaction = AnalysisInteraction(
            id=uuid.uuid4(),
            trigger_content_id=trigger_content_id,
            trigger_reply_id=trigger_reply_id,
            trigger_author_id=trigger_author_id,
            target_content=self.mention_detector.target_content(trigger_content),
            status="pending",
        )
        self.db.add(interaction)
        await self.db.commit()

        logger.info("[ANALYSIS] Created interaction %s for content %s", interaction.id, trigger_content_id)
        return interaction

    async def get_interaction(self, interaction_id: UUIDLike) -> AnalysisInteraction:
        result = await self.db.execute(
            select(AnalysisInteraction)
            .where(AnalysisInteraction.id == parse_uuid(interaction_id, "interaction_id"))
            .execution_options(populate_existing=True)
        )
        interaction = result.scalar_one_or_none()
        if interaction is None:
            raise InteractionNotFoundError(f"Interaction {interaction_id} not found")
        return interaction

    async def get_author_interactions(
        self, author_id: str, limit: int = AUTHOR_HISTORY_LIMIT
    ) -> List[AnalysisInteraction]:
        """Interactions triggered by one author, newest first."""
        result = await self.db.execute(
            select(AnalysisInteraction)
            .where(AnalysisInteraction.trigger_author_id == author_id)
            .order_by(AnalysisInteraction.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def advance_status(self, interaction: AnalysisInteraction, new_status: str) -> AnalysisInteraction:
        if new_status not in ALLOWED_TRANSITIONS.get(interaction.status, set()):
            raise InvalidTransitionError(
                f"Interaction {interaction.id} cannot move from {interaction.status} to {new_status}"
            )
        interaction.status = new_status
        await self.db.commit()
        return interaction

    async def process_interaction(self, interaction_id: UUIDLike) -> AnalysisInteraction:
        interaction = await self.get_interaction(interaction_id)
        await self.advance_status(interaction, "processing")

        try:
            result, embedding = await self._analyze(interaction.target_content)
            facts = await self._find_relevant_facts(interaction.target_content)

            interaction.analysis_result = result.to_dict()
            interaction.entropy_score = result.entropy_score
            interaction.fallacies_found = list(result.fallacies_found)
            interaction.arguments_referenced = [str(arg.id) for arg in result.related_arguments]
            interaction.response_content = format_response(result, facts)
            interaction.response_content_id = uuid.uuid4()
            interaction.completed_at = utcnow()
            await self.advance_status(interaction, "completed")
        except Exception as exc:
            logger.exception("[ANALYSIS] Interaction %s failed", interaction_id)
            await self.db.rollback()
            interaction = await self.get_interaction(interaction_id)
            interaction.error_message = str(exc) or exc.__class__.__name__
            interaction.completed_at = utcnow()
            return await self.advance_status(interaction, "failed")

        logger.info("[ANALYSIS] Completed interaction %s", interaction.id)

        await self.extract_and_store_argument(interaction, result, embedding)
        return interaction

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    async def analyze(self, content: str) -> AnalysisResult:
        result, _ = await self._analyze(content)
        return result

    async def _analyze(self, content: str) -> Tuple[AnalysisResult, Optional[List[float]]]:
        embedding: Optional[List[float]] = None
        related = []
        try:
            embedding = await self.embedding_service.embed_text(content)
            related = await self.ledger.find_similar_arguments(embedding, limit=MAX_CONTEXT_ARGUMENTS)
        except EmbeddingUnavailableError as exc:
            logger.warning("[ANALYSIS] Embedding unavailable, continuing without related arguments: %s", exc)

        heuristics = run_heuristics(content)

        context = [
            ArgumentContext(
                id=arg.id,
                content=arg.content[:REASONING_CONTEXT_CHARS],
                confidence=arg.confidence,
                similarity=arg.similarity,
            )
            for arg in related[:REASONING_CONTEXT_ARGUMENTS]
        ]
        judgment = await self._run_reasoning(content, context, heuristics.fallacies)

        if judgment is not None:
            logical_validity = judgment.logical_validity
            evidence_quality = judgment.evidence_quality
        else:
            logical_validity = heuristics.argument_strength
            evidence_quality = heuristics.evidence_level

        related_arguments = [
            RelatedArgument(
                id=arg.id,
                content=arg.content[:RELATED_PREVIEW_CHARS],
                similarity=arg.similarity,
                stance=self.stance_classifier.classify(content, arg.content),
            )
            for arg in related
        ]

        summary = judgment.summary if judgment and judgment.summary else generate_heuristic_summary(
            heuristics.entropy_score,
            heuristics.fallacies,
            heuristics.ethical_concerns,
        )

        result = AnalysisResult(
            entropy_score=heuristics.entropy_score,
            logical_validity=logical_validity,
            evidence_quality=evidence_quality,
            fallacies_found=heuristics.fallacies,
            ethical_concerns=heuristics.ethical_concerns,
            confidence=(logical_validity + evidence_quality) / 2,
            summary=summary,
            recommendation=generate_recommendation(
                heuristics.entropy_score,
                logical_validity,
                evidence_quality,
                heuristics.fallacies,
                heuristics.ethical_concerns,
            ),
            related_arguments=related_arguments,
        )
        return result, embedding

    async def _run_reasoning(
        self,
        content: str,
        context: List[ArgumentContext],
        fallacies: List[str],
    ) -> Optional[ReasoningJudgment]:
        try:
            return await asyncio.wait_for(
                self.reasoning_client.assess(content, context, fallacies),
                timeout=self.reasoning_timeout,
            )
        except Exception as exc:
            logger.warning("[REASONING] Falling back to heuristics: %r", exc)
            return None

    async def _find_relevant_facts(self, content: str) -> List[FactMatch]:
        try:
            return await self.facts.find_similar_facts(content, limit=RELEVANT_FACTS_LIMIT)
        except Exception as exc:
            logger.warning("[FACTS] Fact lookup failed: %s", exc)
            return []

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    async def extract_and_store_argument(
        self,
        interaction: AnalysisInteraction,
        result: AnalysisResult,
        embedding: Optional[List[float]] = None,
    ) -> None:
        """Store the analyzed content as an argument, or cite a near-duplicate."""
        content = interaction.target_content
        try:
            if not embedding:
                embedding = await self.embedding_service.embed_text(content)

            similar = await self.ledger.find_similar_arguments(embedding, limit=1)
            if similar and similar[0].similarity > DEDUP_SIMILARITY_THRESHOLD:
                await self.ledger.record_citation(similar[0].id)
                return

            stored_content = content[:MAX_ARGUMENT_CHARS]
            await self.ledger.create_argument(
                content=stored_content,
                summary=result.summary[:MAX_SUMMARY_CHARS],
                source_content_id=interaction.trigger_content_id,
                source_author_id=interaction.trigger_author_id,
                scores=ArgumentScores(
                    logical_validity=result.logical_validity,
                    evidence_quality=result.evidence_quality,
                    entropy_score=result.entropy_score,
                ),
                # a truncated argument is re-embedded so the vector matches the stored text
                embedding=embedding if stored_content == content else None,
            )
        except Exception as exc:
            await self.db.rollback()
            logger.warning("[ANALYSIS] Failed to extract argument from interaction %s: %s", interaction.id, exc)
