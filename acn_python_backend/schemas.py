"""Pydantic request/response models shared by the ACN routers."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SubmitInteractionRequest(BaseModel):
    content: str = Field(..., min_length=1)
    content_id: str
    author_id: str
    reply_id: Optional[str] = None


class InteractionAccepted(BaseModel):
    interaction_id: str
    status: str


class InteractionResponse(BaseModel):
    id: str
    status: str
    trigger_content_id: str
    trigger_reply_id: Optional[str] = None
    trigger_author_id: str
    target_content: str
    analysis_result: Optional[Dict[str, Any]] = None
    entropy_score: Optional[float] = None
    fallacies_found: Optional[List[str]] = None
    arguments_referenced: Optional[List[str]] = None
    response_content: Optional[str] = None
    response_content_id: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class EngagementRequest(BaseModel):
    actor_id: str
    interaction_id: Optional[str] = None


class ConfidenceRequest(BaseModel):
    confidence: float
    reason: str = "manual update"
    interaction_id: Optional[str] = None


class ConfidenceUpdateResponse(BaseModel):
    argument_id: str
    old_confidence: float
    new_confidence: float
    propagated_to: List[str]


class FactLinkRequest(BaseModel):
    fact_id: str
    dependency_strength: float = 1.0


class FactLinkResponse(BaseModel):
    argument_id: str
    fact_claim_id: str
    dependency_strength: float
    effective_confidence: float


class EffectiveConfidenceResponse(BaseModel):
    argument_id: str
    effective_confidence: float


class MergeClustersRequest(BaseModel):
    source_cluster_id: str
    target_cluster_id: str


class MergeClustersResponse(BaseModel):
    target_cluster_id: str
    moved: int


class CreateFactRequest(BaseModel):
    claim: str = Field(..., min_length=1)
    source_content_id: Optional[str] = None
    source_author_id: Optional[str] = None
    initial_confidence: float = 0.5


class ChallengeFactRequest(BaseModel):
    reason: str


class CiteFactRequest(BaseModel):
    context_content_id: Optional[str] = None


class FactUpdateResponse(BaseModel):
    fact_id: str
    old_confidence: float
    new_confidence: float
    affected_arguments: List[str]
