"""
EVM Chain Client

Typed blockchain I/O for the relayer: escrow and token reads, gas planning,
simulation, submission from the relayer account and receipt waiting.

Key Features:
    - Every RPC failure is translated to ``ChainUnavailable`` (endpoint
      unreachable or timed out) or ``RpcError`` (node error or revert)
    - No operation retries; the relay executor owns retry policy
    - Submissions from the relayer account are serialized with a lock so the
      account's own transaction nonces never collide
    - ``await_receipt`` enforces a hard timeout and raises ``ConfirmationTimeout``

Dependencies:
    - web3.py: For blockchain RPC interaction
    - eth_account: For transaction signing
"""

import asyncio
from typing import TYPE_CHECKING, Any, Awaitable, Optional, TypeVar

import aiohttp
from eth_account import Account
from web3 import AsyncWeb3, Web3
from web3.exceptions import ContractLogicError, TransactionNotFound, Web3Exception

from ...engine.exceptions import ChainUnavailable, ConfirmationTimeout, RpcError
from ...logging_config import get_logger
from .abis import get_erc20_abi, get_escrow_abi, get_relayer_abi
from .constants import DEFAULT_GAS_PRICE_MULTIPLIER
from .schemas import ContractCall, EscrowSnapshot, GasPlan, LogEntry, PreparedCall, RelayReceipt

if TYPE_CHECKING:
    from ...config import RelayerConfig

logger = get_logger(__name__)

T = TypeVar("T")


def _revert_reason(error: ContractLogicError) -> Optional[str]:
    reason = getattr(error, "message", None) or str(error)
    if reason and reason.startswith("execution reverted: "):
        reason = reason[len("execution reverted: "):]
    return reason or None


def _hex32_to_bytes(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)


class ChainClient:
    """
    Relayer-side access to the escrow deployment.

    Attributes:
        account: Relayer account (pays gas and signs every submission)
        address: Checksum relayer address
        escrow: Escrow contract (nonces, escrow details, EscrowCreated events)
        relayer: Trusted forwarder contract (meta-transaction entry points)
        token: Escrow payment token (balance and allowance reads)

    Example:
        client = ChainClient.from_config(RelayerConfig.from_env())
        nonce = await client.read_nonce("0x...")
    """

    def __init__(
        self,
        private_key: str,
        rpc_url: str,
        escrow_contract: str,
        relayer_contract: str,
        token_contract: str,
        chain_id: Optional[int] = None,
        gas_price_multiplier: float = DEFAULT_GAS_PRICE_MULTIPLIER,
        request_timeout: int = 30,
        receipt_poll_interval: float = 0.5,
        web3: Optional[AsyncWeb3] = None,
    ):
        """
        Args:
            private_key: Relayer private key (0x-prefixed hex).
            rpc_url: JSON-RPC endpoint URL.
            escrow_contract / relayer_contract / token_contract: Contract addresses.
            chain_id: Chain id written into transactions; fetched by web3 when ``None``.
            gas_price_multiplier: Factor applied to the network gas price.
            request_timeout: HTTP timeout for each RPC request in seconds.
            receipt_poll_interval: Seconds between receipt polls.
            web3: Preconfigured ``AsyncWeb3`` (tests inject a fake provider here).
        """
        self.account = Account.from_key(private_key)
        self.address = AsyncWeb3.to_checksum_address(self.account.address)
        self.chain_id = chain_id
        self.gas_price_multiplier = gas_price_multiplier
        self.receipt_poll_interval = receipt_poll_interval
        self.escrow_address = AsyncWeb3.to_checksum_address(escrow_contract)

        self._request_timeout = request_timeout
        self._rpc_url = rpc_url
        self._web3 = web3 or self._get_web3_instance()
        self._submit_lock = asyncio.Lock()

        self.escrow = self._web3.eth.contract(address=self.escrow_address, abi=get_escrow_abi())
        self.relayer = self._web3.eth.contract(
            address=AsyncWeb3.to_checksum_address(relayer_contract), abi=get_relayer_abi()
        )
        self.token = self._web3.eth.contract(
            address=AsyncWeb3.to_checksum_address(token_contract), abi=get_erc20_abi()
        )

    @classmethod
    def from_config(cls, config: "RelayerConfig", web3: Optional[AsyncWeb3] = None) -> "ChainClient":
        return cls(
            private_key=config.relayer_private_key,
            rpc_url=config.rpc_url,
            escrow_contract=config.escrow_contract,
            relayer_contract=config.relayer_contract,
            token_contract=config.token_contract,
            chain_id=config.chain_id,
            gas_price_multiplier=config.gas_price_multiplier,
            request_timeout=config.request_timeout,
            receipt_poll_interval=config.receipt_poll_interval,
            web3=web3,
        )

    def _get_web3_instance(self) -> AsyncWeb3:
        return AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
            self._rpc_url,
            request_kwargs={"timeout": self._request_timeout},
        ))

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        """Await *awaitable*, translating transport and node errors."""
        try:
            return await awaitable
        except ContractLogicError as e:
            raise RpcError(
                f"{operation} reverted",
                revert_reason=_revert_reason(e),
                details={"operation": operation},
            ) from e
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            raise ChainUnavailable(
                f"RPC endpoint unavailable during {operation}: {e}",
                {"operation": operation},
            ) from e
        except (Web3Exception, ValueError) as e:
            raise RpcError(f"{operation} failed: {e}", details={"operation": operation}) from e

    def _function(self, call: ContractCall):
        return getattr(self.relayer.functions, call.function_name)(*call.args)

    # ==================== Reads ====================

    async def read_nonce(self, address: str) -> int:
        """Meta-transaction nonce of *address* on the escrow contract."""
        fn = self.escrow.functions.nonces(AsyncWeb3.to_checksum_address(address))
        return int(await self._call("nonces", fn.call()))

    async def read_escrow(self, escrow_id: str) -> Optional[EscrowSnapshot]:
        """
        Read an escrow record.

        Returns:
            ``EscrowSnapshot``, or ``None`` if the contract has no escrow under *escrow_id*.
        """
        fn = self.escrow.functions.getEscrowDetails(_hex32_to_bytes(escrow_id))
        details = await self._call("getEscrowDetails", fn.call())
        return EscrowSnapshot.from_contract(escrow_id, tuple(details))

    async def read_token_balance(self, address: str) -> int:
        fn = self.token.functions.balanceOf(AsyncWeb3.to_checksum_address(address))
        return int(await self._call("balanceOf", fn.call()))

    async def read_token_allowance(self, owner: str, spender: Optional[str] = None) -> int:
        """Allowance granted by *owner* to *spender* (the escrow contract by default)."""
        fn = self.token.functions.allowance(
            AsyncWeb3.to_checksum_address(owner),
            AsyncWeb3.to_checksum_address(spender or self.escrow_address),
        )
        return int(await self._call("allowance", fn.call()))

    async def read_native_balance(self, address: Optional[str] = None) -> int:
        """Native balance in wei of *address* (the relayer account by default)."""
        target = AsyncWeb3.to_checksum_address(address or self.address)
        return int(await self._call("eth_getBalance", self._web3.eth.get_balance(target)))

    async def read_gas_price(self) -> int:
        return int(await self._call("eth_gasPrice", self._web3.eth.gas_price))

    # ==================== Execution ====================

    async def estimate_gas(self, call: ContractCall) -> int:
        """Estimate gas units for *call* sent from the relayer account."""
        fn = self._function(call)
        return int(await self._call(f"estimateGas({call.function_name})", fn.estimate_gas({"from": self.address})))

    async def plan_gas(self, gas_limit: int) -> GasPlan:
        """Combine *gas_limit* with the current gas price scaled by the multiplier."""
        base_price = await self.read_gas_price()
        return GasPlan.from_network(gas_limit, base_price, self.gas_price_multiplier)

    async def simulate(self, call: ContractCall, gas_plan: GasPlan) -> PreparedCall:
        """
        Execute *call* with ``eth_call`` at the planned gas and price.

        Raises:
            RpcError: The call reverted (``revert_reason`` set where available).
        """
        fn = self._function(call)
        result = await self._call(
            f"simulate({call.function_name})",
            fn.call({
                "from": self.address,
                "gas": gas_plan.gas_limit,
                "gasPrice": gas_plan.gas_price,
            }),
        )
        return PreparedCall(call=call, gas_plan=gas_plan, simulated_result=result)

    async def submit(self, prepared: PreparedCall) -> str:
        """
        Sign and broadcast *prepared* from the relayer account.

        Submissions are issued one at a time; the account nonce is read as
        ``pending`` under the lock.

        Returns:
            0x-prefixed transaction hash.
        """
        fn = self._function(prepared.call)
        async with self._submit_lock:
            tx_nonce = await self._call(
                "eth_getTransactionCount",
                self._web3.eth.get_transaction_count(self.address, "pending"),
            )
            params = {
                "from": self.address,
                "gas": prepared.gas_plan.gas_limit,
                "gasPrice": prepared.gas_plan.gas_price,
                "nonce": tx_nonce,
            }
            if self.chain_id is not None:
                params["chainId"] = self.chain_id
            tx_dict = await self._call("buildTransaction", fn.build_transaction(params))
            signed_tx = self.account.sign_transaction(tx_dict)
            tx_hash = await self._call(
                "eth_sendRawTransaction",
                self._web3.eth.send_raw_transaction(signed_tx.raw_transaction),
            )
        tx_hash_hex = Web3.to_hex(tx_hash)
        logger.info("chain.submitted", tx_hash=tx_hash_hex, function=prepared.call.function_name, nonce=tx_nonce)
        return tx_hash_hex

    async def await_receipt(self, tx_hash: str, confirmations: int = 1, timeout: float = 10.0) -> RelayReceipt:
        """
        Poll until *tx_hash* has *confirmations* blocks (the inclusion block counts as one).

        Raises:
            ConfirmationTimeout: Not confirmed within *timeout* seconds.
        """
        async def _poll() -> Any:
            while True:
                try:
                    receipt = await self._web3.eth.get_transaction_receipt(tx_hash)
                except TransactionNotFound:
                    receipt = None  # still pending
                if receipt is not None:
                    current_block = await self._web3.eth.block_number
                    if current_block - receipt["blockNumber"] + 1 >= confirmations:
                        return receipt
                await asyncio.sleep(self.receipt_poll_interval)

        try:
            receipt = await asyncio.wait_for(self._call("eth_getTransactionReceipt", _poll()), timeout)
        except asyncio.TimeoutError as e:
            raise ConfirmationTimeout(
                f"Transaction not confirmed within {timeout:g}s",
                {"transactionHash": tx_hash, "confirmations": confirmations},
            ) from e

        return RelayReceipt(
            transaction_hash=Web3.to_hex(receipt["transactionHash"]),
            block_number=int(receipt["blockNumber"]),
            gas_used=int(receipt["gasUsed"]),
            status=int(receipt.get("status", 0)),
            logs=[
                LogEntry(
                    address=log["address"],
                    topics=[Web3.to_hex(t) for t in log.get("topics", [])],
                    data=Web3.to_hex(log.get("data", b"")),
                )
                for log in receipt.get("logs", [])
            ],
        )
