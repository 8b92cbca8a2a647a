"""
Base Schema Models for the Escrow Relayer

This module defines the base classes and enumerations shared by the chain
adapter, the relay pipeline and the HTTP layer.

Core Classes:
    - CanonicalModel: Pydantic base model serialized under its wire aliases
    - VerificationStatus: Outcome of a signature check
    - EscrowStatus: On-chain escrow state machine, mirrored read-only
    - PipelineStage: States of a relay request
    - BaseVerificationResult: Verification result with success helpers

Dependencies:
    - pydantic: For data validation and serialization
"""

from typing import Optional, Dict, Any
from enum import Enum, IntEnum

from pydantic import BaseModel, ConfigDict, Field


class CanonicalModel(BaseModel):
    """
    Pydantic base model with alias-based wire serialization.

    Models accept both their field names and their camelCase aliases, so the
    same class validates wire payloads and is constructed from Python code.

    Example:
        class MyModel(CanonicalModel):
            escrow_id: str = Field(..., alias="escrowId")

        MyModel(escrowId="0x..") == MyModel(escrow_id="0x..")
    """

    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        """Return the JSON-compatible wire representation (aliases, no ``None`` values)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class VerificationStatus(str, Enum):
    """Signature verification outcome."""
    SUCCESS = "success"
    MALFORMED_SIGNATURE = "malformed_signature"
    INVALID_SIGNATURE = "invalid_signature"


class EscrowStatus(IntEnum):
    """Escrow contract state, as returned by ``getEscrowDetails``."""
    CREATED = 0
    FUNDED = 1
    DOCUMENTS_PENDING = 2
    SETTLED = 3
    DISPUTED = 4


class PipelineStage(str, Enum):
    """
    States of a single relay request.

    Requests move strictly forward through these stages; ``FAILED`` is
    reachable from any non-terminal stage.
    """
    RECEIVED = "received"
    VERIFIED = "verified"
    PREFLIGHTED = "preflighted"
    GAS_ESTIMATED = "gas_estimated"
    SIMULATED = "simulated"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class BaseVerificationResult(CanonicalModel):
    """
    Base verification result.

    Attributes:
        status: Verification status
        is_valid: Overall validity flag
        message: Human-readable status message
        error_details: Optional structured error context
    """

    status: VerificationStatus = Field(..., description="Verification status")
    is_valid: bool = Field(..., description="Overall verification result")
    message: Optional[str] = Field(default=None, description="Human-readable status message")
    error_details: Optional[Dict[str, Any]] = Field(default=None, description="Detailed error information")

    def is_success(self) -> bool:
        return self.status == VerificationStatus.SUCCESS and self.is_valid

    def get_error_message(self) -> Optional[str]:
        if self.is_success():
            return None
        return self.message or f"Verification failed: {self.status.value}"
