"""
EVM Chain Data Models

Typed values crossing the chain client boundary: escrow snapshots read from the
contract, contract calls and their gas plans, and receipts with decoded logs.

Main Components:
    - EscrowSnapshot: Read-only view of ``getEscrowDetails``
    - ContractCall: Relayer-contract function plus positional arguments
    - GasPlan: Estimated gas and multiplier-adjusted gas price
    - PreparedCall: Simulated call ready for submission
    - RelayReceipt / LogEntry: Confirmed transaction data
    - SignatureVerificationResult: EIP-712 recovery outcome
"""

import math
from typing import Any, List, Optional, Tuple

from pydantic import Field, field_validator

from ...schemas.bases import CanonicalModel, BaseVerificationResult, EscrowStatus


class EscrowSnapshot(CanonicalModel):
    """
    Escrow record as returned by the escrow contract.

    Never mutated by the relayer; only the contract owns escrow state.
    """
    escrow_id: str = Field(..., alias="escrowId")
    buyer: str
    seller: str
    amount: int = Field(..., ge=0)
    delivery_deadline: int = Field(..., alias="deliveryDeadline")
    status: EscrowStatus
    token: str
    funded_at: int = Field(default=0, alias="fundedAt")
    settled_at: int = Field(default=0, alias="settledAt")
    dispute_resolved: bool = Field(default=False, alias="disputeResolved")

    @classmethod
    def from_contract(cls, escrow_id: str, details: Tuple[Any, ...]) -> Optional["EscrowSnapshot"]:
        """
        Build a snapshot from the ``getEscrowDetails`` output tuple.

        Returns:
            ``None`` when the contract returned an empty record (zero buyer).
        """
        buyer, seller, amount, deadline, status, token, funded_at, settled_at, dispute_resolved = details
        if int(buyer, 16) == 0:
            return None
        return cls(
            escrow_id=escrow_id,
            buyer=buyer,
            seller=seller,
            amount=int(amount),
            delivery_deadline=int(deadline),
            status=EscrowStatus(int(status)),
            token=token,
            funded_at=int(funded_at),
            settled_at=int(settled_at),
            dispute_resolved=bool(dispute_resolved),
        )


class ContractCall(CanonicalModel):
    """A relayer-contract function call with positional ABI arguments."""
    function_name: str = Field(..., description="Relayer contract function, e.g. relayFundEscrow")
    args: Tuple[Any, ...] = Field(default=())

    def __repr__(self) -> str:
        return f"ContractCall({self.function_name})"


class GasPlan(CanonicalModel):
    """
    Gas units and price for one submission.

    ``gas_price`` is ``base_gas_price`` scaled by the configured multiplier
    using integer arithmetic on hundredths. The multiplier is floored to
    whole hundredths first, so 1.155 scales by 115.
    """
    gas_limit: int = Field(..., gt=0)
    base_gas_price: int = Field(..., ge=0)
    gas_price: int = Field(..., ge=0)

    @classmethod
    def from_network(cls, gas_limit: int, base_gas_price: int, multiplier: float) -> "GasPlan":
        scaled = int(base_gas_price) * math.floor(multiplier * 100) // 100
        return cls(gas_limit=int(gas_limit), base_gas_price=int(base_gas_price), gas_price=scaled)


class PreparedCall(CanonicalModel):
    """Call that passed simulation at its gas plan and may be submitted."""
    call: ContractCall
    gas_plan: GasPlan
    simulated_result: Optional[Any] = Field(default=None, description="Decoded return value from eth_call")


class LogEntry(CanonicalModel):
    address: str
    topics: List[str] = Field(default_factory=list)
    data: str = Field(default="0x")

    @field_validator("topics")
    @classmethod
    def lowercase_topics(cls, v: List[str]) -> List[str]:
        return [t.lower() for t in v]


class RelayReceipt(CanonicalModel):
    """Confirmed transaction receipt, reduced to what the relayer reports."""
    transaction_hash: str = Field(..., alias="transactionHash")
    block_number: int = Field(..., alias="blockNumber")
    gas_used: int = Field(..., alias="gasUsed")
    status: int = Field(..., description="1 for success, 0 for revert")
    logs: List[LogEntry] = Field(default_factory=list)

    def first_topic_match(self, topic0: str, index: int = 1) -> Optional[str]:
        """Return ``topics[index]`` of the first log whose ``topics[0]`` equals *topic0*."""
        wanted = topic0.lower()
        for log in self.logs:
            if len(log.topics) > index and log.topics[0] == wanted:
                return log.topics[index]
        return None


class SignatureVerificationResult(BaseVerificationResult):
    """
    EIP-712 signature verification result.

    Attributes:
        primary_type: Message type that was reconstructed
        expected_signer: Address claimed by the request
        recovered_signer: Address recovered from the signature, if recovery succeeded
        nonce: Authoritative nonce the message was rebuilt with
    """
    primary_type: str
    expected_signer: str
    recovered_signer: Optional[str] = None
    nonce: int = Field(..., ge=0)
