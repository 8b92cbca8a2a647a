from .client import ChainClient
from .schemas import (
    EscrowSnapshot,
    ContractCall,
    GasPlan,
    PreparedCall,
    LogEntry,
    RelayReceipt,
    SignatureVerificationResult,
)
from .requests import (
    BaseRelayRequest,
    CreateEscrowRequest,
    FundEscrowRequest,
    ConfirmDeliveryRequest,
    StoreDocumentRequest,
    RelayRequest,
)
from .signatures import (
    build_escrow_typed_data,
    sign_create_escrow,
    sign_fund_escrow,
    sign_confirm_delivery,
    sign_store_document,
)
from .verifies import SignatureVerifier

__all__ = [
    "ChainClient",
    "EscrowSnapshot",
    "ContractCall",
    "GasPlan",
    "PreparedCall",
    "LogEntry",
    "RelayReceipt",
    "SignatureVerificationResult",
    "BaseRelayRequest",
    "CreateEscrowRequest",
    "FundEscrowRequest",
    "ConfirmDeliveryRequest",
    "StoreDocumentRequest",
    "RelayRequest",
    "build_escrow_typed_data",
    "sign_create_escrow",
    "sign_fund_escrow",
    "sign_confirm_delivery",
    "sign_store_document",
    "SignatureVerifier",
]
