"""
EVM Signing Utilities

Local EIP-712 signing for the four escrow meta-transactions. Signing runs
in-process via ``eth_account``; no RPC endpoint is required, so these helpers
serve both the gasless client and tests.

Every signer returns the packed 65-byte ``r || s || v`` signature as a
0x-prefixed hex string, which is the format the relay endpoints accept.
"""

from eth_account import Account
from eth_utils import to_hex

from .standards import (
    EIP712Domain,
    EscrowMessage,
    EscrowTypedData,
    CreateEscrowMessage,
    FundEscrowMessage,
    ConfirmDeliveryMessage,
    StoreDocumentMessage,
)
from .constants import DOMAIN_NAME, DOMAIN_VERSION


# ---------------------------------------------------------------------------
# Typed-data builder
# ---------------------------------------------------------------------------

def build_escrow_typed_data(
    message: EscrowMessage,
    *,
    chain_id: int,
    escrow_contract: str,
    domain_name: str = DOMAIN_NAME,
    domain_version: str = DOMAIN_VERSION,
) -> EscrowTypedData:
    """
    Wrap an escrow message in its EIP-712 envelope without signing.

    The relayer's verifier calls this with the same arguments, so the digest
    signed here is the digest recovered there.

    Args:
        message:         One of the four escrow message dataclasses.
        chain_id:        EVM network id bound into the domain.
        escrow_contract: Escrow contract address (domain ``verifyingContract``).
        domain_name:     Domain ``name`` (default ``"LiskEscrow"``).
        domain_version:  Domain ``version`` (default ``"1"``).
    """
    domain = EIP712Domain(
        name=domain_name,
        version=domain_version,
        chainId=chain_id,
        verifyingContract=escrow_contract,
    )
    return EscrowTypedData(domain=domain, message=message)


def sign_typed_message(
    private_key: str,
    message: EscrowMessage,
    *,
    chain_id: int,
    escrow_contract: str,
    domain_name: str = DOMAIN_NAME,
    domain_version: str = DOMAIN_VERSION,
) -> str:
    """
    Sign an escrow message and return the packed signature.

    Returns:
        0x-prefixed 130-hex-character signature.
    """
    typed_data = build_escrow_typed_data(
        message,
        chain_id=chain_id,
        escrow_contract=escrow_contract,
        domain_name=domain_name,
        domain_version=domain_version,
    )
    signed = Account.sign_typed_data(private_key, full_message=typed_data.to_dict())
    return to_hex(signed.signature)


# ---------------------------------------------------------------------------
# Per-action signers
# ---------------------------------------------------------------------------

def sign_create_escrow(
    private_key: str,
    *,
    seller: str,
    amount: int,
    token: str,
    delivery_deadline: int,
    nonce: int,
    chain_id: int,
    escrow_contract: str,
) -> str:
    """Sign a ``CreateEscrow`` message as the buyer."""
    message = CreateEscrowMessage(
        seller=seller,
        amount=amount,
        token=token,
        deliveryDeadline=delivery_deadline,
        nonce=nonce,
    )
    return sign_typed_message(private_key, message, chain_id=chain_id, escrow_contract=escrow_contract)


def sign_fund_escrow(private_key: str, *, escrow_id: str, nonce: int, chain_id: int, escrow_contract: str) -> str:
    """Sign a ``FundEscrow`` message as the buyer."""
    message = FundEscrowMessage(escrowId=escrow_id, nonce=nonce)
    return sign_typed_message(private_key, message, chain_id=chain_id, escrow_contract=escrow_contract)


def sign_confirm_delivery(private_key: str, *, escrow_id: str, nonce: int, chain_id: int, escrow_contract: str) -> str:
    """Sign a ``ConfirmDelivery`` message as the buyer."""
    message = ConfirmDeliveryMessage(escrowId=escrow_id, nonce=nonce)
    return sign_typed_message(private_key, message, chain_id=chain_id, escrow_contract=escrow_contract)


def sign_store_document(
    private_key: str,
    *,
    escrow_id: str,
    document_hash: str,
    nonce: int,
    chain_id: int,
    escrow_contract: str,
) -> str:
    """Sign a ``StoreDocument`` message as the seller."""
    message = StoreDocumentMessage(escrowId=escrow_id, documentHash=document_hash, nonce=nonce)
    return sign_typed_message(private_key, message, chain_id=chain_id, escrow_contract=escrow_contract)
