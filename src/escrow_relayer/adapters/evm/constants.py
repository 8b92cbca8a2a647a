"""
EVM Chain Configuration Management

Provides the supported chain presets, EIP-712 domain defaults, event topics and
format patterns shared by the relayer's chain client, verifier and preflight
checks. Also includes unit helpers for converting token values to human
readable amounts.
"""

import re
from typing import Dict, Optional
from decimal import Decimal, InvalidOperation
from pydantic import BaseModel, Field

from eth_utils import keccak, to_hex
from web3 import Web3


class EvmChainConfig(BaseModel):
    """EVM blockchain network configuration."""
    caip2: str
    chain_id: int
    name: str = Field(..., description="Human-readable network name")
    rpc_url: str = Field(..., description="Default JSON-RPC endpoint URL")
    explorer_url: Optional[str] = Field(default=None, description="Block explorer URL")
    native_symbol: str = Field(default="ETH", description="Native gas token symbol")


_CHAIN_CONFIGS: Dict[int, EvmChainConfig] = {
    31337: EvmChainConfig(
        caip2="eip155:31337",
        chain_id=31337,
        name="Localhost",
        rpc_url="http://127.0.0.1:8545",
    ),
    4202: EvmChainConfig(
        caip2="eip155:4202",
        chain_id=4202,
        name="Lisk Sepolia Testnet",
        rpc_url="https://rpc.sepolia-api.lisk.com",
        explorer_url="https://sepolia-blockscout.lisk.com",
    ),
}


def get_chain_config(chain_id: int) -> Optional[EvmChainConfig]:
    """Return the preset for *chain_id*, or ``None`` for unknown chains."""
    return _CHAIN_CONFIGS.get(int(chain_id))


def get_rpc_url(chain_id: int) -> Optional[str]:
    """
    Resolve the default RPC endpoint for a supported chain.

    Args:
        chain_id: EVM chain ID as integer (31337=Localhost, 4202=Lisk Sepolia)

    Returns:
        The preset RPC URL, or ``None`` when the chain is not preconfigured.
    """
    config = get_chain_config(chain_id)
    return config.rpc_url if config else None


# ---------------------------------------------------------------------------
# EIP-712 domain defaults
# ---------------------------------------------------------------------------

DOMAIN_NAME: str = "LiskEscrow"
DOMAIN_VERSION: str = "1"

# ---------------------------------------------------------------------------
# Relay execution defaults
# ---------------------------------------------------------------------------

DEFAULT_GAS_PRICE_MULTIPLIER: float = 1.1

#: Relayer must hold at least 0.01 native token before it pays for a relay.
MIN_RELAYER_BALANCE_WEI: int = Web3.to_wei("0.01", "ether")

DEFAULT_CONFIRMATION_TIMEOUT: float = 10.0
DEFAULT_CONFIRMATIONS: int = 1

#: Escrow token is USDC with 6 decimals.
TOKEN_DECIMALS: int = 6
TOKEN_SYMBOL: str = "USDC"

#: Largest value a uint256 message field can carry.
UINT256_MAX: int = 2 ** 256 - 1

# ---------------------------------------------------------------------------
# Escrow events
# ---------------------------------------------------------------------------

ESCROW_CREATED_EVENT_SIGNATURE: str = "EscrowCreated(bytes32,address,address,uint256,uint256)"
ESCROW_CREATED_TOPIC: str = to_hex(keccak(text=ESCROW_CREATED_EVENT_SIGNATURE))

# ---------------------------------------------------------------------------
# Format patterns
# ---------------------------------------------------------------------------

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")
BYTES32_PATTERN = re.compile(r"^0x[a-fA-F0-9]{64}$")
SIGNATURE_PATTERN = re.compile(r"^0x[a-fA-F0-9]{130}$")


def is_valid_address(value: Optional[str]) -> bool:
    return isinstance(value, str) and ADDRESS_PATTERN.match(value) is not None


def is_valid_bytes32(value: Optional[str]) -> bool:
    return isinstance(value, str) and BYTES32_PATTERN.match(value) is not None


# ---------------------------------------------------------------------------
# Unit helpers
# ---------------------------------------------------------------------------

def amount_to_value(amount: float | str | Decimal, decimals: int = TOKEN_DECIMALS) -> int:
    """
    Convert a human-readable token amount to its smallest unit.

    Raises:
        ValueError: If *amount* is not numeric or is negative.
    """
    try:
        dec = Decimal(str(amount))
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e
    if dec < 0:
        raise ValueError(f"Amount must be non-negative, got {amount}")
    return int(dec * (Decimal(10) ** decimals))


def value_to_amount(value: int, decimals: int = TOKEN_DECIMALS) -> str:
    """Convert a smallest-unit token value to a normalized decimal string."""
    dec = Decimal(int(value)) / (Decimal(10) ** decimals)
    return format(dec.normalize(), "f")
