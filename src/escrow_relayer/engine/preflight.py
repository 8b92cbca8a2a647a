"""
Preflight Checks

Read-and-compare guards evaluated after signature verification and before any
gas is estimated. Each guard only saves a submission that would otherwise be
certain to fail; escrow status rules stay with the contract, which reverts on
violation.

Guards per request:
    - All requests: relayer native balance >= configured floor
    - CreateEscrow: delivery deadline in the future
    - FundEscrow: escrow exists, buyer token balance and allowance cover the amount
    - ConfirmDelivery / StoreDocument: identifiers are well-formed bytes32
"""

import time
from typing import Callable, Optional

from ..adapters.evm.client import ChainClient
from ..adapters.evm.constants import MIN_RELAYER_BALANCE_WEI, TOKEN_SYMBOL, value_to_amount
from ..adapters.evm.requests import (
    BaseRelayRequest,
    CreateEscrowRequest,
    FundEscrowRequest,
    ensure_bytes32,
)
from ..adapters.evm.schemas import EscrowSnapshot
from .exceptions import (
    DeadlineExpired,
    EscrowNotFound,
    InsufficientAllowance,
    InsufficientBalance,
    RelayerUnderfunded,
)


class PreflightChecker:
    """
    Variant-specific guards. Pure reads; no shared state is mutated.

    Args:
        chain: Chain client used for balance, allowance and escrow reads.
        min_relayer_balance_wei: Relayer native balance floor.
        clock: Returns the current unix time; injectable for tests.
    """

    def __init__(
        self,
        chain: ChainClient,
        min_relayer_balance_wei: int = MIN_RELAYER_BALANCE_WEI,
        clock: Callable[[], float] = time.time,
    ):
        self.chain = chain
        self.min_relayer_balance_wei = min_relayer_balance_wei
        self.clock = clock

    async def run(self, request: BaseRelayRequest) -> Optional[EscrowSnapshot]:
        """
        Run every guard that applies to *request*.

        Returns:
            The escrow snapshot read for fund requests, otherwise ``None``.

        Raises:
            PreflightFailed: One of its subclasses naming the failed guard.
            ChainUnavailable / RpcError: A read failed.
        """
        for name, value in request.identifiers().items():
            ensure_bytes32(name, value)

        await self.check_relayer_balance()

        if isinstance(request, CreateEscrowRequest):
            self.check_deadline(request)
            return None
        if isinstance(request, FundEscrowRequest):
            return await self.check_funding(request)
        return None

    async def check_relayer_balance(self) -> int:
        balance = await self.chain.read_native_balance()
        if balance < self.min_relayer_balance_wei:
            raise RelayerUnderfunded(
                "Relayer has insufficient funds for gas",
                {"balance": str(balance), "required": str(self.min_relayer_balance_wei)},
            )
        return balance

    def check_deadline(self, request: CreateEscrowRequest) -> None:
        now = int(self.clock())
        if request.delivery_deadline <= now:
            raise DeadlineExpired(
                "Delivery deadline must be in the future",
                {"deliveryDeadline": request.delivery_deadline, "now": now},
            )

    async def check_funding(self, request: FundEscrowRequest) -> EscrowSnapshot:
        escrow = await self.chain.read_escrow(request.escrow_id)
        if escrow is None:
            raise EscrowNotFound("Escrow not found", {"escrowId": request.escrow_id})

        balance = await self.chain.read_token_balance(request.buyer)
        if balance < escrow.amount:
            raise InsufficientBalance(
                f"Insufficient {TOKEN_SYMBOL} balance",
                {
                    "required": value_to_amount(escrow.amount),
                    "available": value_to_amount(balance),
                },
            )

        allowance = await self.chain.read_token_allowance(request.buyer)
        if allowance < escrow.amount:
            raise InsufficientAllowance(
                f"Insufficient {TOKEN_SYMBOL} allowance",
                {
                    "required": value_to_amount(escrow.amount),
                    "approved": value_to_amount(allowance),
                },
            )
        return escrow
