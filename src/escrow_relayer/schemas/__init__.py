from .bases import CanonicalModel, VerificationStatus, EscrowStatus, PipelineStage, BaseVerificationResult
from .https import RelayResponse, NonceResponse, HealthResponse, ErrorResponse

__all__ = [
    "CanonicalModel",
    "VerificationStatus",
    "EscrowStatus",
    "PipelineStage",
    "BaseVerificationResult",
    "RelayResponse",
    "NonceResponse",
    "HealthResponse",
    "ErrorResponse",
]
