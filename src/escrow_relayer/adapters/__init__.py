from .evm import (
    ChainClient,
    SignatureVerifier,
    RelayRequest,
    CreateEscrowRequest,
    FundEscrowRequest,
    ConfirmDeliveryRequest,
    StoreDocumentRequest,
)

__all__ = [
    "ChainClient",
    "SignatureVerifier",
    "RelayRequest",
    "CreateEscrowRequest",
    "FundEscrowRequest",
    "ConfirmDeliveryRequest",
    "StoreDocumentRequest",
]
