"""
Relay Request Variants

The four meta-transactions the relayer accepts, as immutable pydantic models.
Each variant knows who signs it, which EIP-712 message it rebuilds for a given
nonce, and which relayer-contract function it submits.

Wire field names are camelCase (``deliveryDeadline``, ``escrowId``,
``documentHash``); Python code may use the snake_case names.
"""

from typing import ClassVar, Dict, Literal, Union

from pydantic import ConfigDict, Field, field_validator
from typing_extensions import Annotated
from web3 import Web3

from ...engine.exceptions import MalformedIdentifier
from ...schemas.bases import CanonicalModel
from .constants import UINT256_MAX, is_valid_address, is_valid_bytes32
from .schemas import ContractCall
from .standards import (
    ConfirmDeliveryMessage,
    CreateEscrowMessage,
    EscrowMessage,
    FundEscrowMessage,
    StoreDocumentMessage,
)


def ensure_bytes32(name: str, value: str) -> str:
    """
    Check that *value* is a 0x-prefixed 32-byte hex string.

    Raises:
        MalformedIdentifier: If the value is not well-formed.
    """
    if not is_valid_bytes32(value):
        raise MalformedIdentifier(
            f"{name} must be a 0x-prefixed 32-byte hex string",
            {"field": name, "value": value},
        )
    return value


def _hex_to_bytes(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)


class BaseRelayRequest(CanonicalModel):
    """
    Common shape of a relay request.

    Subclasses declare ``primary_type`` and ``function_name`` and implement
    ``actor``, ``build_message``, ``identifiers`` and ``contract_call``.
    """

    model_config = ConfigDict(frozen=True)

    primary_type: ClassVar[str]
    function_name: ClassVar[str]

    signature: str = Field(..., description="0x-prefixed 65-byte EIP-712 signature")

    @property
    def actor(self) -> str:
        raise NotImplementedError

    def identifiers(self) -> Dict[str, str]:
        """bytes32 fields carried by the request, keyed by wire name."""
        return {}

    def build_message(self, nonce: int) -> EscrowMessage:
        raise NotImplementedError

    def contract_call(self) -> ContractCall:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(actor={self.actor})"


def _check_address(v: str) -> str:
    if not is_valid_address(v):
        raise ValueError(f"Invalid address format: {v!r}")
    return v


class CreateEscrowRequest(BaseRelayRequest):
    """Buyer-signed request to open an escrow with a seller."""

    primary_type: ClassVar[str] = "CreateEscrow"
    function_name: ClassVar[str] = "relayCreateEscrow"

    action: Literal["create_escrow"] = "create_escrow"
    seller: str
    amount: int = Field(..., ge=0, le=UINT256_MAX, description="Amount in token smallest units")
    token: str
    delivery_deadline: int = Field(..., ge=0, le=UINT256_MAX, alias="deliveryDeadline", description="Unix timestamp")
    buyer: str

    @field_validator("seller", "token", "buyer")
    @classmethod
    def validate_addresses(cls, v: str) -> str:
        return _check_address(v)

    @property
    def actor(self) -> str:
        return self.buyer

    def build_message(self, nonce: int) -> CreateEscrowMessage:
        return CreateEscrowMessage(
            seller=Web3.to_checksum_address(self.seller),
            amount=self.amount,
            token=Web3.to_checksum_address(self.token),
            deliveryDeadline=self.delivery_deadline,
            nonce=nonce,
        )

    def contract_call(self) -> ContractCall:
        return ContractCall(
            function_name=self.function_name,
            args=(
                Web3.to_checksum_address(self.seller),
                self.amount,
                Web3.to_checksum_address(self.token),
                self.delivery_deadline,
                Web3.to_checksum_address(self.buyer),
                _hex_to_bytes(self.signature),
            ),
        )


class FundEscrowRequest(BaseRelayRequest):
    """Buyer-signed request to pull the escrow amount into the contract."""

    primary_type: ClassVar[str] = "FundEscrow"
    function_name: ClassVar[str] = "relayFundEscrow"

    action: Literal["fund_escrow"] = "fund_escrow"
    escrow_id: str = Field(..., alias="escrowId")
    buyer: str

    @field_validator("buyer")
    @classmethod
    def validate_buyer(cls, v: str) -> str:
        return _check_address(v)

    @property
    def actor(self) -> str:
        return self.buyer

    def identifiers(self) -> Dict[str, str]:
        return {"escrowId": self.escrow_id}

    def build_message(self, nonce: int) -> FundEscrowMessage:
        return FundEscrowMessage(escrowId=ensure_bytes32("escrowId", self.escrow_id), nonce=nonce)

    def contract_call(self) -> ContractCall:
        return ContractCall(
            function_name=self.function_name,
            args=(
                _hex_to_bytes(self.escrow_id),
                Web3.to_checksum_address(self.buyer),
                _hex_to_bytes(self.signature),
            ),
        )


class ConfirmDeliveryRequest(BaseRelayRequest):
    """Buyer-signed request to confirm delivery and release funds."""

    primary_type: ClassVar[str] = "ConfirmDelivery"
    function_name: ClassVar[str] = "relayConfirmDelivery"

    action: Literal["confirm_delivery"] = "confirm_delivery"
    escrow_id: str = Field(..., alias="escrowId")
    buyer: str

    @field_validator("buyer")
    @classmethod
    def validate_buyer(cls, v: str) -> str:
        return _check_address(v)

    @property
    def actor(self) -> str:
        return self.buyer

    def identifiers(self) -> Dict[str, str]:
        return {"escrowId": self.escrow_id}

    def build_message(self, nonce: int) -> ConfirmDeliveryMessage:
        return ConfirmDeliveryMessage(escrowId=ensure_bytes32("escrowId", self.escrow_id), nonce=nonce)

    def contract_call(self) -> ContractCall:
        return ContractCall(
            function_name=self.function_name,
            args=(
                _hex_to_bytes(self.escrow_id),
                Web3.to_checksum_address(self.buyer),
                _hex_to_bytes(self.signature),
            ),
        )


class StoreDocumentRequest(BaseRelayRequest):
    """Seller-signed request to anchor a document hash to an escrow."""

    primary_type: ClassVar[str] = "StoreDocument"
    function_name: ClassVar[str] = "relayStoreDocument"

    action: Literal["store_document"] = "store_document"
    escrow_id: str = Field(..., alias="escrowId")
    document_hash: str = Field(..., alias="documentHash")
    seller: str

    @field_validator("seller")
    @classmethod
    def validate_seller(cls, v: str) -> str:
        return _check_address(v)

    @property
    def actor(self) -> str:
        return self.seller

    def identifiers(self) -> Dict[str, str]:
        return {"escrowId": self.escrow_id, "documentHash": self.document_hash}

    def build_message(self, nonce: int) -> StoreDocumentMessage:
        return StoreDocumentMessage(
            escrowId=ensure_bytes32("escrowId", self.escrow_id),
            documentHash=ensure_bytes32("documentHash", self.document_hash),
            nonce=nonce,
        )

    def contract_call(self) -> ContractCall:
        return ContractCall(
            function_name=self.function_name,
            args=(
                _hex_to_bytes(self.escrow_id),
                _hex_to_bytes(self.document_hash),
                Web3.to_checksum_address(self.seller),
                _hex_to_bytes(self.signature),
            ),
        )


RelayRequest = Annotated[
    Union[
        CreateEscrowRequest,
        FundEscrowRequest,
        ConfirmDeliveryRequest,
        StoreDocumentRequest,
    ],
    Field(discriminator="action"),
]
