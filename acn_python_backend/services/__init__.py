"""Services for the Argument Confidence Network."""

from .argument_ledger import ArgumentLedger
from .confidence_propagation import ConfidencePropagator
from .fact_claim_service import FactClaimService
from .analysis_orchestrator import AnalysisOrchestrator

__all__ = [
    'AnalysisOrchestrator',
    'ArgumentLedger',
    'ConfidencePropagator',
    'FactClaimService',
]
