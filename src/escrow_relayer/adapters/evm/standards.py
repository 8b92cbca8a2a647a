from dataclasses import dataclass, field
from typing import Dict, Any, List, Union


# -----------------------------
# EIP-712 Domain
# -----------------------------

@dataclass
class EIP712Domain:
    """
    EIP-712 domain separator.
    Pins signatures to the escrow contract on one chain.
    """
    name: str
    version: str
    chainId: int
    verifyingContract: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chainId,
            "verifyingContract": self.verifyingContract,
        }


# -----------------------------
# Escrow meta-transaction messages
# -----------------------------

_DOMAIN_FIELDS: List[Dict[str, str]] = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

# Field order is part of the type hash and must match the contract.
ESCROW_MESSAGE_TYPES: Dict[str, List[Dict[str, str]]] = {
    "CreateEscrow": [
        {"name": "seller", "type": "address"},
        {"name": "amount", "type": "uint256"},
        {"name": "token", "type": "address"},
        {"name": "deliveryDeadline", "type": "uint256"},
        {"name": "nonce", "type": "uint256"},
    ],
    "FundEscrow": [
        {"name": "escrowId", "type": "bytes32"},
        {"name": "nonce", "type": "uint256"},
    ],
    "ConfirmDelivery": [
        {"name": "escrowId", "type": "bytes32"},
        {"name": "nonce", "type": "uint256"},
    ],
    "StoreDocument": [
        {"name": "escrowId", "type": "bytes32"},
        {"name": "documentHash", "type": "bytes32"},
        {"name": "nonce", "type": "uint256"},
    ],
}


@dataclass
class CreateEscrowMessage:
    """
    Message signed by a buyer to open an escrow.

    Attributes:
        seller: Address receiving funds on settlement.
        amount: Escrow amount in token smallest units.
        token: Payment token address.
        deliveryDeadline: Unix timestamp by which delivery must be confirmed.
        nonce: Buyer's meta-transaction nonce on the escrow contract.
    """
    seller: str
    amount: int
    token: str
    deliveryDeadline: int
    nonce: int

    primary_type = "CreateEscrow"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seller": self.seller,
            "amount": self.amount,
            "token": self.token,
            "deliveryDeadline": self.deliveryDeadline,
            "nonce": self.nonce,
        }


@dataclass
class FundEscrowMessage:
    """Message signed by a buyer to fund an existing escrow."""
    escrowId: str
    nonce: int

    primary_type = "FundEscrow"

    def to_dict(self) -> Dict[str, Any]:
        return {"escrowId": self.escrowId, "nonce": self.nonce}


@dataclass
class ConfirmDeliveryMessage:
    """Message signed by a buyer to confirm delivery and release funds."""
    escrowId: str
    nonce: int

    primary_type = "ConfirmDelivery"

    def to_dict(self) -> Dict[str, Any]:
        return {"escrowId": self.escrowId, "nonce": self.nonce}


@dataclass
class StoreDocumentMessage:
    """Message signed by a seller to anchor a document hash to an escrow."""
    escrowId: str
    documentHash: str
    nonce: int

    primary_type = "StoreDocument"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "escrowId": self.escrowId,
            "documentHash": self.documentHash,
            "nonce": self.nonce,
        }


EscrowMessage = Union[CreateEscrowMessage, FundEscrowMessage, ConfirmDeliveryMessage, StoreDocumentMessage]


@dataclass
class EscrowTypedData:
    """
    Container for escrow typed data usable with EIP-712 signing routines.

    ``to_dict()`` returns ``{types, primaryType, domain, message}`` as consumed
    by ``eth_account`` and ``eth_signTypedData_v4``. Only the message's own
    primary type is included in ``types``.

    Attributes:
        domain: EIP712Domain instance describing the signing domain.
        message: One of the four escrow message dataclasses.
    """
    domain: EIP712Domain
    message: EscrowMessage

    types: Dict[str, List[Dict[str, str]]] = field(init=False)

    def __post_init__(self) -> None:
        self.types = {
            "EIP712Domain": list(_DOMAIN_FIELDS),
            self.primary_type: list(ESCROW_MESSAGE_TYPES[self.primary_type]),
        }

    @property
    def primary_type(self) -> str:
        return self.message.primary_type

    def to_dict(self) -> Dict[str, Any]:
        return {
            "types": self.types,
            "primaryType": self.primary_type,
            "domain": self.domain.to_dict(),
            "message": self.message.to_dict(),
        }
