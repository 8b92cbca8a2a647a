"""
Relayer Test Mocks Module

Provides mock data and in-memory fakes for testing the relayer without a
blockchain node. Signatures produced here are real EIP-712 signatures over the
escrow domain, so the verifier is exercised end to end.

Key Components:
    - Mock accounts (buyer, seller, relayer) and contract addresses
    - FakeChainClient: in-memory stand-in for ChainClient with call counters,
      failure injection and contract-like nonce and escrow bookkeeping
    - MagicMock based AsyncWeb3 for testing ChainClient itself
    - Factory functions for configs, dependencies and signed relay requests

Usage:
    from test_mocks import (
        FakeChainClient,
        create_signed_fund_request,
        create_mock_dependencies,
    )

    chain = FakeChainClient()
    deps = create_mock_dependencies(chain)
    request = create_signed_fund_request(nonce=0)
"""

import asyncio
from collections import Counter
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

from eth_account import Account
from eth_utils import keccak, to_hex
from web3 import AsyncWeb3

from escrow_relayer.adapters.evm.constants import ESCROW_CREATED_TOPIC
from escrow_relayer.adapters.evm.requests import (
    ConfirmDeliveryRequest,
    CreateEscrowRequest,
    FundEscrowRequest,
    StoreDocumentRequest,
)
from escrow_relayer.adapters.evm.schemas import (
    ContractCall,
    EscrowSnapshot,
    GasPlan,
    LogEntry,
    PreparedCall,
    RelayReceipt,
)
from escrow_relayer.adapters.evm.signatures import (
    sign_confirm_delivery,
    sign_create_escrow,
    sign_fund_escrow,
    sign_store_document,
)
from escrow_relayer.adapters.evm.verifies import SignatureVerifier
from escrow_relayer.config import RelayerConfig
from escrow_relayer.engine.events import Dependencies
from escrow_relayer.engine.nonces import NonceAuthority
from escrow_relayer.engine.preflight import PreflightChecker
from escrow_relayer.schemas.bases import EscrowStatus


# ========================================================================
# Mock Blockchain Constants
# ========================================================================

# Well-known local development keys (do not use in production!)
MOCK_RELAYER_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
MOCK_BUYER_PRIVATE_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
MOCK_SELLER_PRIVATE_KEY = "0x5de4111afa1a4b94908f83103eb1f1706367c2e68ca870fc3fb9a804cdab365a"

MOCK_RELAYER_ADDRESS = AsyncWeb3.to_checksum_address(Account.from_key(MOCK_RELAYER_PRIVATE_KEY).address)
MOCK_BUYER_ADDRESS = AsyncWeb3.to_checksum_address(Account.from_key(MOCK_BUYER_PRIVATE_KEY).address)
MOCK_SELLER_ADDRESS = AsyncWeb3.to_checksum_address(Account.from_key(MOCK_SELLER_PRIVATE_KEY).address)

# Contract addresses of a fresh local deployment
MOCK_TOKEN_CONTRACT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
MOCK_ESCROW_CONTRACT = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"
MOCK_RELAYER_CONTRACT = "0x9fE46736679d2D9a65F0992F2272dE9f3c7fa6e0"

MOCK_CHAIN_ID = 31337
MOCK_RPC_URL = "http://127.0.0.1:8545"

# Fixed clock so deadline checks are deterministic
MOCK_NOW = 1_700_000_000
MOCK_DEADLINE = MOCK_NOW + 7 * 24 * 3600

MOCK_AMOUNT = 1_000_000  # 1 USDC
MOCK_ESCROW_ID = to_hex(keccak(text="mock-escrow"))
MOCK_DOCUMENT_HASH = to_hex(keccak(text="bill-of-lading.pdf"))

MOCK_GAS_PRICE = 1_000_000_000
MOCK_GAS_ESTIMATE = 150_000
MOCK_GAS_USED = 120_000
MOCK_RELAYER_BALANCE = 10 ** 18

SIGNATURE_DOMAIN = {"chain_id": MOCK_CHAIN_ID, "escrow_contract": MOCK_ESCROW_CONTRACT}

# Position of the signer address in each relayer-contract call
_ACTOR_ARG_INDEX = {
    "relayCreateEscrow": 4,
    "relayFundEscrow": 1,
    "relayConfirmDelivery": 1,
    "relayStoreDocument": 2,
}


def _address_topic(address: str) -> str:
    return "0x" + address.lower()[2:].rjust(64, "0")


# ========================================================================
# Fake Chain Client
# ========================================================================

class FakeChainClient:
    """
    In-memory chain client with the same async surface as ``ChainClient``.

    Submitting a relay call behaves like the contracts would: the signer's
    nonce increments, create calls register a new escrow and emit an
    ``EscrowCreated`` log, fund calls move the escrow to FUNDED.

    Failure injection:
        ``errors["estimate_gas"] = RpcError(...)`` makes that method raise.

    Attributes:
        calls: Counter of method invocations by name.
        submitted: Prepared calls in submission order.
    """

    def __init__(
        self,
        native_balance: int = MOCK_RELAYER_BALANCE,
        gas_price: int = MOCK_GAS_PRICE,
        gas_estimate: int = MOCK_GAS_ESTIMATE,
        gas_price_multiplier: float = 1.1,
    ):
        self.address = MOCK_RELAYER_ADDRESS
        self.native_balance = native_balance
        self.gas_price = gas_price
        self.gas_estimate = gas_estimate
        self.gas_price_multiplier = gas_price_multiplier

        self.nonces: Dict[str, int] = {}
        self.escrows: Dict[str, EscrowSnapshot] = {}
        self.token_balances: Dict[str, int] = {}
        self.allowances: Dict[str, int] = {}

        self.errors: Dict[str, Exception] = {}
        self.receipt_status = 1
        self.emit_escrow_created = True

        self.calls: Counter = Counter()
        self.submitted: List[PreparedCall] = []
        self._receipts: Dict[str, RelayReceipt] = {}

    def _enter(self, name: str) -> None:
        self.calls[name] += 1
        error = self.errors.get(name)
        if error is not None:
            raise error

    # ---- state helpers ----

    def add_escrow(
        self,
        escrow_id: str = MOCK_ESCROW_ID,
        buyer: str = MOCK_BUYER_ADDRESS,
        seller: str = MOCK_SELLER_ADDRESS,
        amount: int = MOCK_AMOUNT,
        status: EscrowStatus = EscrowStatus.CREATED,
    ) -> EscrowSnapshot:
        snapshot = EscrowSnapshot(
            escrow_id=escrow_id,
            buyer=buyer,
            seller=seller,
            amount=amount,
            delivery_deadline=MOCK_DEADLINE,
            status=status,
            token=MOCK_TOKEN_CONTRACT,
        )
        self.escrows[escrow_id.lower()] = snapshot
        return snapshot

    def fund_buyer(self, balance: int = MOCK_AMOUNT, allowance: int = MOCK_AMOUNT, buyer: str = MOCK_BUYER_ADDRESS) -> None:
        self.token_balances[buyer.lower()] = balance
        self.allowances[buyer.lower()] = allowance

    # ---- reads ----

    async def read_nonce(self, address: str) -> int:
        self._enter("read_nonce")
        return self.nonces.get(address.lower(), 0)

    async def read_escrow(self, escrow_id: str) -> Optional[EscrowSnapshot]:
        self._enter("read_escrow")
        return self.escrows.get(escrow_id.lower())

    async def read_token_balance(self, address: str) -> int:
        self._enter("read_token_balance")
        return self.token_balances.get(address.lower(), 0)

    async def read_token_allowance(self, owner: str, spender: Optional[str] = None) -> int:
        self._enter("read_token_allowance")
        return self.allowances.get(owner.lower(), 0)

    async def read_native_balance(self, address: Optional[str] = None) -> int:
        self._enter("read_native_balance")
        return self.native_balance

    async def read_gas_price(self) -> int:
        self._enter("read_gas_price")
        return self.gas_price

    # ---- execution ----

    async def estimate_gas(self, call: ContractCall) -> int:
        self._enter("estimate_gas")
        return self.gas_estimate

    async def plan_gas(self, gas_limit: int) -> GasPlan:
        self._enter("plan_gas")
        return GasPlan.from_network(gas_limit, self.gas_price, self.gas_price_multiplier)

    async def simulate(self, call: ContractCall, gas_plan: GasPlan) -> PreparedCall:
        self._enter("simulate")
        return PreparedCall(call=call, gas_plan=gas_plan)

    async def submit(self, prepared: PreparedCall) -> str:
        self._enter("submit")
        self.submitted.append(prepared)
        tx_hash = to_hex(keccak(text=f"tx-{len(self.submitted)}"))

        call = prepared.call
        actor = call.args[_ACTOR_ARG_INDEX[call.function_name]].lower()
        self.nonces[actor] = self.nonces.get(actor, 0) + 1

        logs = []
        if call.function_name == "relayCreateEscrow":
            seller, amount, token, deadline, buyer = call.args[:5]
            escrow_id = to_hex(keccak(text=f"escrow-{len(self.escrows)}"))
            self.escrows[escrow_id] = EscrowSnapshot(
                escrow_id=escrow_id,
                buyer=buyer,
                seller=seller,
                amount=amount,
                delivery_deadline=deadline,
                status=EscrowStatus.CREATED,
                token=token,
            )
            if self.emit_escrow_created:
                logs.append(LogEntry(
                    address=MOCK_ESCROW_CONTRACT,
                    topics=[ESCROW_CREATED_TOPIC, escrow_id, _address_topic(buyer), _address_topic(seller)],
                ))
        elif call.function_name == "relayFundEscrow":
            escrow_id = to_hex(call.args[0])
            escrow = self.escrows[escrow_id]
            self.escrows[escrow_id] = escrow.model_copy(update={"status": EscrowStatus.FUNDED})
            self.token_balances[actor] = self.token_balances.get(actor, 0) - escrow.amount

        self._receipts[tx_hash] = RelayReceipt(
            transaction_hash=tx_hash,
            block_number=100 + len(self.submitted),
            gas_used=MOCK_GAS_USED,
            status=self.receipt_status,
            logs=logs,
        )
        return tx_hash

    async def await_receipt(self, tx_hash: str, confirmations: int = 1, timeout: float = 10.0) -> RelayReceipt:
        self._enter("await_receipt")
        return self._receipts[tx_hash]


# ========================================================================
# Mock AsyncWeb3
# ========================================================================

class AwaitableValue:
    """
    Awaitable attribute stand-in (``await w3.eth.gas_price``).

    Each await returns the next value; the last one repeats.
    """

    def __init__(self, *values: Any):
        self._values = list(values)

    def __await__(self):
        yield from asyncio.sleep(0).__await__()
        if len(self._values) > 1:
            return self._values.pop(0)
        return self._values[0]


def create_mock_web3() -> tuple:
    """
    Create a MagicMock ``AsyncWeb3`` for ``ChainClient``.

    Returns:
        ``(web3, contracts)`` where ``contracts`` maps ``"escrow"``,
        ``"relayer"`` and ``"token"`` to the contract mocks the client binds.
    """
    contracts = {"escrow": MagicMock(), "relayer": MagicMock(), "token": MagicMock()}
    by_address = {
        AsyncWeb3.to_checksum_address(MOCK_ESCROW_CONTRACT): contracts["escrow"],
        AsyncWeb3.to_checksum_address(MOCK_RELAYER_CONTRACT): contracts["relayer"],
        AsyncWeb3.to_checksum_address(MOCK_TOKEN_CONTRACT): contracts["token"],
    }

    web3 = MagicMock()
    web3.eth.contract.side_effect = lambda address, abi: by_address[address]
    web3.eth.get_balance = AsyncMock(return_value=MOCK_RELAYER_BALANCE)
    web3.eth.gas_price = AwaitableValue(MOCK_GAS_PRICE)
    web3.eth.block_number = AwaitableValue(10)
    web3.eth.get_transaction_count = AsyncMock(return_value=7)
    web3.eth.send_raw_transaction = AsyncMock(return_value=keccak(text="raw-tx"))
    web3.eth.get_transaction_receipt = AsyncMock(return_value=create_mock_receipt())
    return web3, contracts


def create_mock_receipt(
    status: int = 1,
    block_number: int = 10,
    logs: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    """Receipt dict shaped like web3's AttributeDict, with bytes hashes and topics."""
    return {
        "transactionHash": keccak(text="raw-tx"),
        "blockNumber": block_number,
        "gasUsed": MOCK_GAS_USED,
        "status": status,
        "logs": logs if logs is not None else [create_mock_escrow_created_log()],
    }


def create_mock_escrow_created_log(escrow_id: str = MOCK_ESCROW_ID) -> Dict[str, Any]:
    return {
        "address": MOCK_ESCROW_CONTRACT,
        "topics": [
            bytes.fromhex(ESCROW_CREATED_TOPIC[2:]),
            bytes.fromhex(escrow_id[2:]),
            bytes.fromhex(_address_topic(MOCK_BUYER_ADDRESS)[2:]),
            bytes.fromhex(_address_topic(MOCK_SELLER_ADDRESS)[2:]),
        ],
        "data": b"",
    }


def create_mock_transaction(nonce: int = 7) -> Dict[str, Any]:
    """Unsigned transaction as ``build_transaction`` would return it."""
    return {
        "to": MOCK_RELAYER_CONTRACT,
        "data": "0x",
        "value": 0,
        "gas": MOCK_GAS_ESTIMATE,
        "gasPrice": MOCK_GAS_PRICE,
        "nonce": nonce,
        "chainId": MOCK_CHAIN_ID,
    }


# ========================================================================
# Configuration And Dependencies
# ========================================================================

def create_mock_config(**overrides: Any) -> RelayerConfig:
    """Relayer config for the local mock deployment; keyword arguments override fields."""
    values = {
        "relayer_private_key": MOCK_RELAYER_PRIVATE_KEY,
        "rpc_url": MOCK_RPC_URL,
        "chain_id": MOCK_CHAIN_ID,
        "escrow_contract": MOCK_ESCROW_CONTRACT,
        "relayer_contract": MOCK_RELAYER_CONTRACT,
        "token_contract": MOCK_TOKEN_CONTRACT,
    }
    values.update(overrides)
    return RelayerConfig(**values)


def create_mock_verifier() -> SignatureVerifier:
    return SignatureVerifier(chain_id=MOCK_CHAIN_ID, escrow_contract=MOCK_ESCROW_CONTRACT)


def create_mock_dependencies(chain: Optional[FakeChainClient] = None, now: float = MOCK_NOW) -> Dependencies:
    """
    Wire a ``Dependencies`` container around a fake chain.

    Args:
        chain: Fake chain client (a fresh one by default).
        now: Unix time seen by preflight deadline checks.
    """
    chain = chain or FakeChainClient()
    return Dependencies(
        chain=chain,
        verifier=create_mock_verifier(),
        nonces=NonceAuthority(chain),
        preflight=PreflightChecker(chain, clock=lambda: now),
        confirmations=1,
        confirmation_timeout=1.0,
    )


# ========================================================================
# Signed Relay Requests
# ========================================================================

def create_signed_create_request(
    nonce: int = 0,
    private_key: str = MOCK_BUYER_PRIVATE_KEY,
    buyer: str = MOCK_BUYER_ADDRESS,
    delivery_deadline: int = MOCK_DEADLINE,
    amount: int = MOCK_AMOUNT,
) -> CreateEscrowRequest:
    """
    Create a CreateEscrow request signed by *private_key* at *nonce*.

    Passing a *buyer* that does not own *private_key* produces a request whose
    signature recovers to a different address.
    """
    signature = sign_create_escrow(
        private_key,
        seller=MOCK_SELLER_ADDRESS,
        amount=amount,
        token=MOCK_TOKEN_CONTRACT,
        delivery_deadline=delivery_deadline,
        nonce=nonce,
        **SIGNATURE_DOMAIN,
    )
    return CreateEscrowRequest(
        seller=MOCK_SELLER_ADDRESS,
        amount=amount,
        token=MOCK_TOKEN_CONTRACT,
        delivery_deadline=delivery_deadline,
        buyer=buyer,
        signature=signature,
    )


def create_signed_fund_request(
    nonce: int = 0,
    escrow_id: str = MOCK_ESCROW_ID,
    private_key: str = MOCK_BUYER_PRIVATE_KEY,
) -> FundEscrowRequest:
    signature = sign_fund_escrow(private_key, escrow_id=escrow_id, nonce=nonce, **SIGNATURE_DOMAIN)
    return FundEscrowRequest(escrow_id=escrow_id, buyer=MOCK_BUYER_ADDRESS, signature=signature)


def create_signed_confirm_request(
    nonce: int = 0,
    escrow_id: str = MOCK_ESCROW_ID,
    private_key: str = MOCK_BUYER_PRIVATE_KEY,
) -> ConfirmDeliveryRequest:
    signature = sign_confirm_delivery(private_key, escrow_id=escrow_id, nonce=nonce, **SIGNATURE_DOMAIN)
    return ConfirmDeliveryRequest(escrow_id=escrow_id, buyer=MOCK_BUYER_ADDRESS, signature=signature)


def create_signed_store_request(
    nonce: int = 0,
    escrow_id: str = MOCK_ESCROW_ID,
    document_hash: str = MOCK_DOCUMENT_HASH,
    private_key: str = MOCK_SELLER_PRIVATE_KEY,
) -> StoreDocumentRequest:
    signature = sign_store_document(
        private_key,
        escrow_id=escrow_id,
        document_hash=document_hash,
        nonce=nonce,
        **SIGNATURE_DOMAIN,
    )
    return StoreDocumentRequest(
        escrow_id=escrow_id,
        document_hash=document_hash,
        seller=MOCK_SELLER_ADDRESS,
        signature=signature,
    )


SIGNED_REQUEST_FACTORIES = {
    "create_escrow": create_signed_create_request,
    "fund_escrow": create_signed_fund_request,
    "confirm_delivery": create_signed_confirm_request,
    "store_document": create_signed_store_request,
}
