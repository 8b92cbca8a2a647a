import time

import httpx
from eth_account import Account

from escrow_relayer.adapters.evm.constants import amount_to_value
from escrow_relayer.clients import GaslessClient

buyer_pk = "0xxxx"  # Replace with the buyer's private key
seller = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
usdc = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
escrow_contract = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"


async def main():
    async with GaslessClient(
        private_key=buyer_pk,
        chain_id=31337,
        escrow_contract=escrow_contract,
        base_url="http://localhost:3001",
        timeout=httpx.Timeout(30.0),
    ) as client:
        print("Buyer:", Account.from_key(buyer_pk).address)
        created = await client.create_escrow(
            seller=seller,
            amount=amount_to_value("25.5"),
            token=usdc,
            delivery_deadline=int(time.time()) + 7 * 24 * 3600,
        )
        print("Escrow created:", created.escrow_id, created.transaction_hash)

        # Requires a prior USDC approve() to the escrow contract
        funded = await client.fund_escrow(created.escrow_id)
        print("Escrow funded:", funded.transaction_hash, "gas used", funded.gas_used)


if __name__ == "__main__":
    import asyncio
    asyncio.run(main())
