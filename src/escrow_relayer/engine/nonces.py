"""Authoritative meta-transaction nonces."""

from ..adapters.evm.client import ChainClient


class NonceAuthority:
    """
    Reads the per-account meta-transaction nonce from the escrow contract.

    Nothing is cached: the nonce is the only replay defense, so every
    verification reads it fresh. The contract alone increments it.
    """

    def __init__(self, chain: ChainClient):
        self.chain = chain

    async def current_nonce(self, address: str) -> int:
        """
        Raises:
            ChainUnavailable / RpcError: The nonce could not be read.
        """
        return await self.chain.read_nonce(address)
