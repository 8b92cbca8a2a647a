"""
HTTP Response Models

Wire shapes returned by the relayer's HTTP surface. Request bodies are the
relay request variants in ``adapters.evm.requests``.
"""

from typing import Optional, Any

from pydantic import Field

from .bases import CanonicalModel


# ==================== Relay Responses ====================

class RelayResponse(CanonicalModel):
    """
    Successful relay result.

    ``escrowId`` is only present for create-escrow requests. When the
    ``EscrowCreated`` log cannot be found it carries the transaction hash.
    """
    success: bool = Field(default=True)
    escrow_id: Optional[str] = Field(default=None, alias="escrowId")
    transaction_hash: str = Field(..., alias="transactionHash")
    gas_used: str = Field(..., alias="gasUsed", description="Gas used, decimal string")


class NonceResponse(CanonicalModel):
    nonce: str = Field(..., description="Current meta-transaction nonce, decimal string")


class HealthResponse(CanonicalModel):
    status: str = Field(default="healthy")
    timestamp: str = Field(..., description="ISO-8601 UTC timestamp")
    uptime: float = Field(..., description="Process uptime in seconds")


# ==================== Error Responses ====================

class ErrorResponse(CanonicalModel):
    """Error body shared by every non-2xx response."""
    error: str
    details: Optional[Any] = None
    code: Optional[str] = None
    stage: Optional[str] = Field(default=None, description="Pipeline stage that could not be reached")
    transaction_hash: Optional[str] = Field(default=None, alias="transactionHash")
    retry_after: Optional[int] = Field(default=None, alias="retryAfter")
