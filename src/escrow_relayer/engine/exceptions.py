"""
Exception and Error Definitions Module

Defines the exception hierarchy for request gating, signature verification,
preflight checks and blockchain execution. Every relayer exception carries an
HTTP ``status_code`` and a stable machine readable ``code`` so the server
layer can translate failures without inspecting messages.

Exception Hierarchy:
    RelayerError (root)
    ├── ConfigurationError
    ├── RequestValidationError
    ├── AuthError
    ├── RateLimited
    ├── SignatureInvalid
    │   ├── MalformedSignature
    │   └── InvalidSignature
    ├── PreflightFailed
    │   ├── RelayerUnderfunded
    │   ├── EscrowNotFound
    │   ├── InsufficientBalance
    │   ├── InsufficientAllowance
    │   ├── DeadlineExpired
    │   └── MalformedIdentifier
    ├── ChainError
    │   ├── ChainUnavailable
    │   └── RpcError
    └── ChainExecutionFailed
        ├── GasEstimationFailed
        ├── SimulationFailed
        ├── SubmissionFailed
        ├── ConfirmationTimeout
        └── TransactionReverted
    InvalidTransition
"""

from typing import Any, Dict, Optional


class RelayerError(Exception):
    """
    Root exception class for all relayer-specific exceptions.

    Attributes:
        message: Human readable description, safe to return to clients.
        details: Optional structured context (addresses, amounts, tx hashes).
    """

    status_code: int = 500
    code: str = "relayer_error"

    def __init__(self, message: str = "", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message or self.__class__.__name__
        self.details: Dict[str, Any] = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.details}


class ConfigurationError(RelayerError):
    """
    Raised when configuration is missing or invalid.

    This includes scenarios such as:
    - Missing relayer private key or contract addresses
    - Non-numeric values for numeric settings
    - Unsupported chain id without an explicit RPC URL
    """
    code = "configuration_error"


# ==================== Request Gate ====================

class RequestValidationError(RelayerError):
    """Raised when a request body or path parameter is malformed."""
    status_code = 400
    code = "validation_error"


class AuthError(RelayerError):
    """Raised when the ``X-API-Key`` header does not match the configured key."""
    status_code = 401
    code = "auth_error"


class RateLimited(RelayerError):
    """
    Raised when a client identity has exhausted its points for the window.

    Attributes:
        retry_after: Whole seconds until the identity's window resets (>= 1).
    """
    status_code = 429
    code = "rate_limited"

    def __init__(self, retry_after: int, message: str = "Too many requests"):
        super().__init__(message, {"retryAfter": retry_after})
        self.retry_after = retry_after


# ==================== Signature ====================

class SignatureInvalid(RelayerError):
    """
    Base exception for signature failures.

    Surfaced as a server error: a bad signature indicates a forged or
    corrupted request rather than a client usage mistake.
    """
    code = "signature_invalid"


class MalformedSignature(SignatureInvalid):
    """Raised when a signature is not a 0x-prefixed 65-byte hex string."""
    code = "malformed_signature"


class InvalidSignature(SignatureInvalid):
    """
    Raised when the recovered signer differs from the claimed actor.

    This includes scenarios such as:
    - Signature over a stale nonce (replay)
    - Signature over different message fields
    - Signature under another domain or chain id
    """
    code = "invalid_signature"


# ==================== Preflight ====================

class PreflightFailed(RelayerError):
    """Base exception for read-and-compare guards evaluated before gas is spent."""
    code = "preflight_failed"


class RelayerUnderfunded(PreflightFailed):
    """Raised when the relayer's native balance is below the configured floor."""
    code = "relayer_underfunded"


class EscrowNotFound(PreflightFailed):
    """Raised when the escrow id resolves to an empty contract record."""
    code = "escrow_not_found"


class InsufficientBalance(PreflightFailed):
    """Raised when the buyer's token balance is below the escrow amount."""
    code = "insufficient_balance"


class InsufficientAllowance(PreflightFailed):
    """Raised when the buyer's allowance to the escrow contract is below the escrow amount."""
    code = "insufficient_allowance"


class DeadlineExpired(PreflightFailed):
    """Raised when a new escrow's delivery deadline is not in the future."""
    code = "deadline_expired"


class MalformedIdentifier(PreflightFailed):
    """Raised when an escrow id or document hash is not a 0x-prefixed bytes32."""
    code = "malformed_identifier"


# ==================== Chain I/O ====================

class ChainError(RelayerError):
    """
    Base exception for blockchain read/write failures.

    No chain operation retries automatically; callers own retry policy.
    """
    code = "chain_error"


class ChainUnavailable(ChainError):
    """Raised when the RPC endpoint cannot be reached or times out."""
    code = "chain_unavailable"


class RpcError(ChainError):
    """
    Raised when the RPC endpoint answers with an error or the call reverts.

    Attributes:
        revert_reason: Contract revert reason when the node reported one.
    """
    code = "rpc_error"

    def __init__(self, message: str = "", revert_reason: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.revert_reason = revert_reason
        if revert_reason:
            self.details.setdefault("revertReason", revert_reason)


# ==================== Execution ====================

class ChainExecutionFailed(RelayerError):
    """Base exception for failures in the gas, simulate, submit and confirm stages."""
    code = "chain_execution_failed"


class GasEstimationFailed(ChainExecutionFailed):
    """Raised when the node refuses to estimate gas, usually a revert-on-estimate."""
    code = "gas_estimation_failed"


class SimulationFailed(ChainExecutionFailed):
    """
    Raised when ``eth_call`` at the planned gas and price reverts.

    Attributes:
        revert_reason: Underlying revert reason where available.
    """
    code = "simulation_failed"

    def __init__(self, message: str = "", revert_reason: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.revert_reason = revert_reason
        if revert_reason:
            self.details.setdefault("revertReason", revert_reason)


class SubmissionFailed(ChainExecutionFailed):
    """Raised when the node rejects the signed transaction."""
    code = "submission_failed"


class ConfirmationTimeout(ChainExecutionFailed):
    """
    Raised when the requested confirmations are not observed in time.

    The transaction may still confirm later; late confirmations are not tracked.
    """
    code = "confirmation_timeout"


class TransactionReverted(ChainExecutionFailed):
    """Raised when the mined receipt reports ``status == 0``."""
    code = "transaction_reverted"


class InvalidTransition(Exception):
    """
    Raised when the relay event chain ends without a terminal event.

    Indicates a wiring error in the event bus (a stage with no handler),
    never a client or chain failure.
    """
    pass
