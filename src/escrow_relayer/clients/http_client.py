"""
Gasless Relay Client

httpx client for the relayer's HTTP surface. Each action fetches the signer's
current nonce from the relayer, signs the EIP-712 message locally and posts it,
so the signer never needs native tokens for gas.
"""

from typing import Any, Dict, Optional

import httpx
from eth_account import Account

from ..adapters.evm.signatures import (
    sign_confirm_delivery,
    sign_create_escrow,
    sign_fund_escrow,
    sign_store_document,
)
from ..schemas.https import RelayResponse


class GaslessClient(httpx.AsyncClient):
    """
    Extended httpx.AsyncClient that signs and relays escrow actions.

    Fully compatible with httpx.AsyncClient and usable as an async context
    manager. The signer is the buyer for create, fund and confirm, and the
    seller for store-document.

    Usage:
        ```python
        async with GaslessClient(
            private_key="0x...",
            chain_id=4202,
            escrow_contract="0x...",
            base_url="http://localhost:3001",
        ) as client:
            result = await client.create_escrow(seller, 1_000_000, usdc, deadline)
            print(result.escrow_id)
        ```

    Raises:
        httpx.HTTPStatusError: From every action when the relayer answers non-2xx.
    """

    def __init__(
        self,
        private_key: str,
        chain_id: int,
        escrow_contract: str,
        api_key: Optional[str] = None,
        **kwargs
    ):
        """
        Args:
            private_key: Signer's private key (never sent to the relayer).
            chain_id: Chain id bound into the EIP-712 domain.
            escrow_contract: Escrow contract address (domain verifying contract).
            api_key: Optional ``X-API-Key`` for relayers that require one.
            **kwargs: All standard httpx.AsyncClient arguments (base_url, timeout, transport, etc.)
        """
        headers = dict(kwargs.pop("headers", None) or {})
        if api_key:
            headers["X-API-Key"] = api_key
        super().__init__(headers=headers, **kwargs)

        self._private_key = private_key
        self.address = Account.from_key(private_key).address
        self.chain_id = chain_id
        self.escrow_contract = escrow_contract

    async def get_nonce(self, address: Optional[str] = None) -> int:
        """Current meta-transaction nonce of *address* (the signer by default)."""
        response = await self.get(f"/nonce/{address or self.address}")
        response.raise_for_status()
        return int(response.json()["nonce"])

    async def _relay(self, path: str, body: Dict[str, Any]) -> RelayResponse:
        response = await self.post(path, json=body)
        response.raise_for_status()
        return RelayResponse.model_validate(response.json())

    def _domain(self) -> Dict[str, Any]:
        return {"chain_id": self.chain_id, "escrow_contract": self.escrow_contract}

    # =========================================================================
    # Relay actions
    # =========================================================================

    async def create_escrow(self, seller: str, amount: int, token: str, delivery_deadline: int) -> RelayResponse:
        """Open an escrow as the buyer. ``amount`` is in token smallest units."""
        nonce = await self.get_nonce()
        signature = sign_create_escrow(
            self._private_key,
            seller=seller,
            amount=amount,
            token=token,
            delivery_deadline=delivery_deadline,
            nonce=nonce,
            **self._domain(),
        )
        return await self._relay("/relay/create-escrow", {
            "seller": seller,
            "amount": str(amount),
            "token": token,
            "deliveryDeadline": str(delivery_deadline),
            "buyer": self.address,
            "signature": signature,
        })

    async def fund_escrow(self, escrow_id: str) -> RelayResponse:
        """Fund an escrow as the buyer. The buyer must have approved the escrow contract."""
        nonce = await self.get_nonce()
        signature = sign_fund_escrow(self._private_key, escrow_id=escrow_id, nonce=nonce, **self._domain())
        return await self._relay("/relay/fund-escrow", {
            "escrowId": escrow_id,
            "buyer": self.address,
            "signature": signature,
        })

    async def confirm_delivery(self, escrow_id: str) -> RelayResponse:
        nonce = await self.get_nonce()
        signature = sign_confirm_delivery(self._private_key, escrow_id=escrow_id, nonce=nonce, **self._domain())
        return await self._relay("/relay/confirm-delivery", {
            "escrowId": escrow_id,
            "buyer": self.address,
            "signature": signature,
        })

    async def store_document(self, escrow_id: str, document_hash: str) -> RelayResponse:
        """Anchor *document_hash* (bytes32) to an escrow as the seller."""
        nonce = await self.get_nonce()
        signature = sign_store_document(
            self._private_key,
            escrow_id=escrow_id,
            document_hash=document_hash,
            nonce=nonce,
            **self._domain(),
        )
        return await self._relay("/relay/store-document", {
            "escrowId": escrow_id,
            "documentHash": document_hash,
            "seller": self.address,
            "signature": signature,
        })
