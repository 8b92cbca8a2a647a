"""
Test suite for ChainClient.

All RPC traffic goes to a MagicMock AsyncWeb3 from test_mocks, so these tests
cover argument shaping, error translation, submission ordering and receipt
polling without a node.
"""
import asyncio
from unittest.mock import AsyncMock

import aiohttp
import pytest
from web3.exceptions import ContractLogicError, TransactionNotFound

from escrow_relayer.adapters.evm.client import ChainClient
from escrow_relayer.adapters.evm.schemas import ContractCall, GasPlan, PreparedCall
from escrow_relayer.engine.exceptions import ChainUnavailable, ConfirmationTimeout, RpcError
from escrow_relayer.schemas.bases import EscrowStatus

from test_mocks import (
    MOCK_AMOUNT,
    MOCK_BUYER_ADDRESS,
    MOCK_CHAIN_ID,
    MOCK_DEADLINE,
    MOCK_ESCROW_CONTRACT,
    MOCK_ESCROW_ID,
    MOCK_GAS_PRICE,
    MOCK_GAS_USED,
    MOCK_RELAYER_ADDRESS,
    MOCK_SELLER_ADDRESS,
    MOCK_TOKEN_CONTRACT,
    AwaitableValue,
    create_mock_config,
    create_mock_receipt,
    create_mock_transaction,
    create_mock_web3,
)

ZERO_ADDRESS = "0x" + "00" * 20

FUND_CALL = ContractCall(
    function_name="relayFundEscrow",
    args=(bytes.fromhex(MOCK_ESCROW_ID[2:]), MOCK_BUYER_ADDRESS, b"\x01" * 65),
)


@pytest.fixture
def mock_web3():
    return create_mock_web3()


@pytest.fixture
def client(mock_web3):
    web3, _ = mock_web3
    return ChainClient.from_config(create_mock_config(receipt_poll_interval=0.01), web3=web3)


def prepared_fund_call() -> PreparedCall:
    return PreparedCall(call=FUND_CALL, gas_plan=GasPlan.from_network(150_000, MOCK_GAS_PRICE, 1.1))


class TestChainClientReads:
    def test_relayer_address_from_key(self, client):
        assert client.address == MOCK_RELAYER_ADDRESS
        assert client.chain_id == MOCK_CHAIN_ID

    @pytest.mark.asyncio
    async def test_read_nonce_checksums_address(self, client, mock_web3):
        _, contracts = mock_web3
        contracts["escrow"].functions.nonces.return_value.call = AsyncMock(return_value=3)

        assert await client.read_nonce(MOCK_BUYER_ADDRESS.lower()) == 3
        contracts["escrow"].functions.nonces.assert_called_with(MOCK_BUYER_ADDRESS)

    @pytest.mark.asyncio
    async def test_read_escrow(self, client, mock_web3):
        _, contracts = mock_web3
        contracts["escrow"].functions.getEscrowDetails.return_value.call = AsyncMock(return_value=[
            MOCK_BUYER_ADDRESS, MOCK_SELLER_ADDRESS, MOCK_AMOUNT, MOCK_DEADLINE, 1, MOCK_TOKEN_CONTRACT, 0, 0, False,
        ])

        escrow = await client.read_escrow(MOCK_ESCROW_ID)

        assert escrow.buyer == MOCK_BUYER_ADDRESS
        assert escrow.status == EscrowStatus.FUNDED
        assert escrow.amount == MOCK_AMOUNT
        contracts["escrow"].functions.getEscrowDetails.assert_called_with(bytes.fromhex(MOCK_ESCROW_ID[2:]))

    @pytest.mark.asyncio
    async def test_read_missing_escrow_returns_none(self, client, mock_web3):
        _, contracts = mock_web3
        contracts["escrow"].functions.getEscrowDetails.return_value.call = AsyncMock(return_value=[
            ZERO_ADDRESS, ZERO_ADDRESS, 0, 0, 0, ZERO_ADDRESS, 0, 0, False,
        ])

        assert await client.read_escrow(MOCK_ESCROW_ID) is None

    @pytest.mark.asyncio
    async def test_allowance_spender_defaults_to_escrow(self, client, mock_web3):
        _, contracts = mock_web3
        contracts["token"].functions.allowance.return_value.call = AsyncMock(return_value=500)

        assert await client.read_token_allowance(MOCK_BUYER_ADDRESS) == 500
        contracts["token"].functions.allowance.assert_called_with(MOCK_BUYER_ADDRESS, MOCK_ESCROW_CONTRACT)

    @pytest.mark.asyncio
    async def test_native_balance_defaults_to_relayer(self, client, mock_web3):
        web3, _ = mock_web3
        await client.read_native_balance()
        web3.eth.get_balance.assert_awaited_with(MOCK_RELAYER_ADDRESS)


class TestChainClientErrors:
    @pytest.mark.asyncio
    async def test_connection_error_is_chain_unavailable(self, client, mock_web3):
        _, contracts = mock_web3
        contracts["escrow"].functions.nonces.return_value.call = AsyncMock(
            side_effect=aiohttp.ClientConnectionError("connection refused")
        )

        with pytest.raises(ChainUnavailable) as exc_info:
            await client.read_nonce(MOCK_BUYER_ADDRESS)
        assert exc_info.value.details["operation"] == "nonces"

    @pytest.mark.asyncio
    async def test_revert_keeps_reason(self, client, mock_web3):
        _, contracts = mock_web3
        contracts["relayer"].functions.relayFundEscrow.return_value.estimate_gas = AsyncMock(
            side_effect=ContractLogicError("execution reverted: Escrow: invalid status")
        )

        with pytest.raises(RpcError) as exc_info:
            await client.estimate_gas(FUND_CALL)
        assert exc_info.value.revert_reason == "Escrow: invalid status"

    @pytest.mark.asyncio
    async def test_node_error_is_rpc_error(self, client, mock_web3):
        _, contracts = mock_web3
        contracts["token"].functions.balanceOf.return_value.call = AsyncMock(side_effect=ValueError("bad response"))

        with pytest.raises(RpcError):
            await client.read_token_balance(MOCK_BUYER_ADDRESS)


class TestChainClientExecution:
    @pytest.mark.asyncio
    async def test_plan_gas_applies_multiplier(self, client):
        plan = await client.plan_gas(100_000)

        assert plan.gas_limit == 100_000
        assert plan.base_gas_price == MOCK_GAS_PRICE
        assert plan.gas_price == MOCK_GAS_PRICE * 110 // 100

    @pytest.mark.asyncio
    async def test_estimate_gas_from_relayer(self, client, mock_web3):
        _, contracts = mock_web3
        fn = contracts["relayer"].functions.relayFundEscrow.return_value
        fn.estimate_gas = AsyncMock(return_value=90_000)

        assert await client.estimate_gas(FUND_CALL) == 90_000
        fn.estimate_gas.assert_awaited_with({"from": MOCK_RELAYER_ADDRESS})

    @pytest.mark.asyncio
    async def test_simulate_uses_gas_plan(self, client, mock_web3):
        _, contracts = mock_web3
        fn = contracts["relayer"].functions.relayFundEscrow.return_value
        fn.call = AsyncMock(return_value=[])
        plan = GasPlan.from_network(150_000, MOCK_GAS_PRICE, 1.1)

        prepared = await client.simulate(FUND_CALL, plan)

        assert prepared.gas_plan == plan
        fn.call.assert_awaited_with({"from": MOCK_RELAYER_ADDRESS, "gas": 150_000, "gasPrice": plan.gas_price})

    @pytest.mark.asyncio
    async def test_submit_signs_with_pending_nonce(self, client, mock_web3):
        web3, contracts = mock_web3
        fn = contracts["relayer"].functions.relayFundEscrow.return_value
        fn.build_transaction = AsyncMock(return_value=create_mock_transaction(nonce=7))

        tx_hash = await client.submit(prepared_fund_call())

        assert tx_hash.startswith("0x") and len(tx_hash) == 66
        web3.eth.get_transaction_count.assert_awaited_with(MOCK_RELAYER_ADDRESS, "pending")
        params = fn.build_transaction.await_args.args[0]
        assert params["nonce"] == 7
        assert params["chainId"] == MOCK_CHAIN_ID
        web3.eth.send_raw_transaction.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_submissions_are_serialized(self, client, mock_web3):
        web3, contracts = mock_web3
        order = []

        async def get_transaction_count(address, block):
            order.append("nonce")
            await asyncio.sleep(0.01)
            return len(order)

        async def send_raw_transaction(raw):
            order.append("send")
            return b"\x11" * 32

        web3.eth.get_transaction_count = AsyncMock(side_effect=get_transaction_count)
        web3.eth.send_raw_transaction = AsyncMock(side_effect=send_raw_transaction)
        contracts["relayer"].functions.relayFundEscrow.return_value.build_transaction = AsyncMock(
            return_value=create_mock_transaction()
        )

        await asyncio.gather(client.submit(prepared_fund_call()), client.submit(prepared_fund_call()))

        assert order == ["nonce", "send", "nonce", "send"]


class TestAwaitReceipt:
    @pytest.mark.asyncio
    async def test_receipt_after_pending(self, client, mock_web3):
        web3, _ = mock_web3
        web3.eth.get_transaction_receipt = AsyncMock(
            side_effect=[TransactionNotFound("pending"), create_mock_receipt()]
        )

        receipt = await client.await_receipt("0x" + "11" * 32, confirmations=1, timeout=1.0)

        assert receipt.status == 1
        assert receipt.gas_used == MOCK_GAS_USED
        assert receipt.block_number == 10
        assert receipt.logs[0].topics[1] == MOCK_ESCROW_ID

    @pytest.mark.asyncio
    async def test_waits_for_confirmations(self, client, mock_web3):
        web3, _ = mock_web3
        web3.eth.block_number = AwaitableValue(10, 10, 11)

        receipt = await client.await_receipt("0x" + "11" * 32, confirmations=2, timeout=1.0)

        assert receipt.block_number == 10
        assert web3.eth.get_transaction_receipt.await_count == 3

    @pytest.mark.asyncio
    async def test_timeout(self, client, mock_web3):
        web3, _ = mock_web3
        web3.eth.get_transaction_receipt = AsyncMock(side_effect=TransactionNotFound("pending"))

        with pytest.raises(ConfirmationTimeout) as exc_info:
            await client.await_receipt("0x" + "11" * 32, timeout=0.05)
        assert exc_info.value.details["transactionHash"] == "0x" + "11" * 32
