"""
EVM Signature Verification

Rebuilds the EIP-712 message for a relay request under the escrow domain and
checks that the signature recovers to the request's claimed actor.

Checks run in order and stop at the first failure:
    1. Structure: 0x prefix and 130 hex characters (65 bytes)
    2. Message reconstruction with the authoritative nonce
    3. ECDSA recovery
    4. Recovered signer equals claimed actor (case-insensitive)

Dependencies:
    - eth_account: For typed-data encoding and signer recovery
"""

from typing import Optional

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_keys.exceptions import BadSignature, ValidationError as KeyValidationError
from eth_utils.exceptions import ValidationError as EthValidationError

from ...engine.exceptions import InvalidSignature, MalformedSignature
from ...schemas.bases import VerificationStatus
from .constants import DOMAIN_NAME, DOMAIN_VERSION, SIGNATURE_PATTERN
from .requests import BaseRelayRequest
from .schemas import SignatureVerificationResult
from .signatures import build_escrow_typed_data


def _is_well_formed_signature(signature: Optional[str]) -> bool:
    return isinstance(signature, str) and SIGNATURE_PATTERN.match(signature) is not None


class SignatureVerifier:
    """
    EIP-712 verifier pinned to one escrow deployment.

    Attributes:
        chain_id: Chain id bound into the domain.
        escrow_contract: Domain ``verifyingContract``.
    """

    def __init__(
        self,
        chain_id: int,
        escrow_contract: str,
        domain_name: str = DOMAIN_NAME,
        domain_version: str = DOMAIN_VERSION,
    ):
        self.chain_id = chain_id
        self.escrow_contract = escrow_contract
        self.domain_name = domain_name
        self.domain_version = domain_version

    def ensure_well_formed(self, request: BaseRelayRequest) -> None:
        """
        Run the structural signature check alone, before any nonce is read.

        Raises:
            MalformedSignature: Signature is not 0x + 130 hex characters.
        """
        if not _is_well_formed_signature(request.signature):
            raise MalformedSignature(
                "Signature must be a 0x-prefixed 65-byte hex string",
                {"primaryType": request.primary_type, "expectedSigner": request.actor},
            )

    def check(self, request: BaseRelayRequest, nonce: int) -> SignatureVerificationResult:
        """
        Verify *request* against *nonce* without raising on signature failures.

        Malformed identifiers in the message still raise ``MalformedIdentifier``
        since no message can be rebuilt from them.

        Returns:
            ``SignatureVerificationResult`` whose ``status`` names the failed check.
        """
        expected = request.actor

        def _fail(status: VerificationStatus, message: str, recovered: Optional[str] = None) -> SignatureVerificationResult:
            return SignatureVerificationResult(
                status=status,
                is_valid=False,
                message=message,
                primary_type=request.primary_type,
                expected_signer=expected,
                recovered_signer=recovered,
                nonce=nonce,
            )

        # ---- 1. Structure ----
        if not _is_well_formed_signature(request.signature):
            return _fail(
                VerificationStatus.MALFORMED_SIGNATURE,
                "Signature must be a 0x-prefixed 65-byte hex string",
            )

        # ---- 2. Message reconstruction ----
        typed_data = build_escrow_typed_data(
            request.build_message(nonce),
            chain_id=self.chain_id,
            escrow_contract=self.escrow_contract,
            domain_name=self.domain_name,
            domain_version=self.domain_version,
        )

        # ---- 3. Recovery ----
        try:
            signable = encode_typed_data(full_message=typed_data.to_dict())
            recovered = Account.recover_message(signable, signature=request.signature)
        except (BadSignature, KeyValidationError, EthValidationError, ValueError, TypeError) as e:
            return _fail(VerificationStatus.INVALID_SIGNATURE, f"Signature recovery failed: {e}")

        # ---- 4. Signer match ----
        if recovered.lower() != expected.lower():
            return _fail(
                VerificationStatus.INVALID_SIGNATURE,
                "Recovered signer does not match request actor",
                recovered,
            )

        return SignatureVerificationResult(
            status=VerificationStatus.SUCCESS,
            is_valid=True,
            message="Signature verified",
            primary_type=request.primary_type,
            expected_signer=expected,
            recovered_signer=recovered,
            nonce=nonce,
        )

    def verify(self, request: BaseRelayRequest, nonce: int) -> SignatureVerificationResult:
        """
        Verify *request* against *nonce*.

        Raises:
            MalformedSignature: Signature is not 0x + 130 hex characters.
            InvalidSignature: Recovery failed or recovered a different address.
            MalformedIdentifier: A bytes32 field of the request is malformed.
        """
        result = self.check(request, nonce)
        if result.is_success():
            return result

        details = {
            "primaryType": result.primary_type,
            "expectedSigner": result.expected_signer,
            "nonce": str(nonce),
        }
        if result.recovered_signer:
            details["recoveredSigner"] = result.recovered_signer

        if result.status == VerificationStatus.MALFORMED_SIGNATURE:
            raise MalformedSignature(result.get_error_message(), details)
        raise InvalidSignature(result.get_error_message(), details)
