"""
Relayer Configuration

Builds the immutable ``RelayerConfig`` once at process start. Values come from
the process environment, with a local ``.env`` file honoured through
python-dotenv. Components receive the config by injection and never read the
environment themselves.

Environment Variables:
    - RELAYER_PRIVATE_KEY: Relayer signing key (required)
    - ESCROW_CONTRACT / RELAYER_CONTRACT / USDC_CONTRACT: Contract addresses (required)
    - RPC_URL: JSON-RPC endpoint (defaults to the chain preset)
    - CHAIN_ID: EVM chain id (default 31337)
    - CORS_ORIGIN, API_KEY, RATE_LIMIT, RATE_LIMIT_WINDOW
    - GAS_PRICE_MULTIPLIER, MIN_RELAYER_BALANCE_WEI
    - CONFIRMATION_TIMEOUT, CONFIRMATIONS
    - HOST, PORT, LOG_LEVEL, JSON_LOGS
"""

import os
from typing import Any, Callable, Mapping, Optional

import dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .adapters.evm.constants import (
    DEFAULT_CONFIRMATION_TIMEOUT,
    DEFAULT_CONFIRMATIONS,
    DEFAULT_GAS_PRICE_MULTIPLIER,
    DOMAIN_NAME,
    DOMAIN_VERSION,
    MIN_RELAYER_BALANCE_WEI,
    get_rpc_url,
    is_valid_address,
)
from .engine.exceptions import ConfigurationError


class RelayerConfig(BaseModel):
    """Immutable relayer settings shared by every component."""

    model_config = ConfigDict(frozen=True)

    relayer_private_key: str = Field(..., repr=False, description="Relayer account private key (0x-prefixed)")
    rpc_url: str = Field(..., description="JSON-RPC endpoint URL")
    chain_id: int = Field(default=31337, description="EVM chain id used in the EIP-712 domain")
    escrow_contract: str = Field(..., description="Escrow contract address (EIP-712 verifying contract)")
    relayer_contract: str = Field(..., description="Trusted forwarder contract receiving relay calls")
    token_contract: str = Field(..., description="Escrow payment token (USDC) address")

    domain_name: str = Field(default=DOMAIN_NAME)
    domain_version: str = Field(default=DOMAIN_VERSION)

    cors_origin: str = Field(default="http://localhost:3000")
    api_key: Optional[str] = Field(default=None, repr=False, description="Expected X-API-Key value; gate disabled when unset")
    rate_limit_points: int = Field(default=100, gt=0)
    rate_limit_window: int = Field(default=3600, gt=0, description="Rate limit window in seconds")

    gas_price_multiplier: float = Field(default=DEFAULT_GAS_PRICE_MULTIPLIER, gt=0)
    min_relayer_balance_wei: int = Field(default=MIN_RELAYER_BALANCE_WEI, ge=0)
    confirmation_timeout: float = Field(default=DEFAULT_CONFIRMATION_TIMEOUT, gt=0)
    confirmations: int = Field(default=DEFAULT_CONFIRMATIONS, ge=1)
    receipt_poll_interval: float = Field(default=0.5, gt=0)
    request_timeout: int = Field(default=30, gt=0, description="RPC HTTP timeout in seconds")

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3001)
    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=False)

    @field_validator("escrow_contract", "relayer_contract", "token_contract")
    @classmethod
    def validate_contract_address(cls, v: str) -> str:
        if not is_valid_address(v):
            raise ValueError(f"Invalid contract address: {v!r}")
        return v

    @field_validator("relayer_private_key")
    @classmethod
    def validate_private_key(cls, v: str) -> str:
        key = v if v.startswith("0x") else f"0x{v}"
        if len(key) != 66:
            raise ValueError("Private key must be 32 bytes of hex")
        return key

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, load_dotenv: bool = True) -> "RelayerConfig":
        """
        Build configuration from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ`` (used by tests).
            load_dotenv: Load a ``.env`` file into ``os.environ`` first.

        Raises:
            ConfigurationError: If a required variable is missing or a value is invalid.
        """
        if environ is None:
            if load_dotenv:
                dotenv.load_dotenv()
            environ = os.environ

        def _get(name: str, cast: Callable[[str], Any] = str, default: Any = None) -> Any:
            raw = environ.get(name)
            if raw is None or raw == "":
                return default
            try:
                return cast(raw)
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {name}: {raw!r}") from e

        missing = [
            name for name in ("RELAYER_PRIVATE_KEY", "ESCROW_CONTRACT", "RELAYER_CONTRACT", "USDC_CONTRACT")
            if not environ.get(name)
        ]
        if missing:
            raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}")

        chain_id = _get("CHAIN_ID", int, 31337)
        rpc_url = _get("RPC_URL") or get_rpc_url(chain_id)
        if not rpc_url:
            raise ConfigurationError(f"RPC_URL is required for unsupported chain_id {chain_id}")

        values = {
            "relayer_private_key": environ["RELAYER_PRIVATE_KEY"],
            "rpc_url": rpc_url,
            "chain_id": chain_id,
            "escrow_contract": environ["ESCROW_CONTRACT"],
            "relayer_contract": environ["RELAYER_CONTRACT"],
            "token_contract": environ["USDC_CONTRACT"],
            "cors_origin": _get("CORS_ORIGIN", str, "http://localhost:3000"),
            "api_key": _get("API_KEY"),
            "rate_limit_points": _get("RATE_LIMIT", int, 100),
            "rate_limit_window": _get("RATE_LIMIT_WINDOW", int, 3600),
            "gas_price_multiplier": _get("GAS_PRICE_MULTIPLIER", float, DEFAULT_GAS_PRICE_MULTIPLIER),
            "min_relayer_balance_wei": _get("MIN_RELAYER_BALANCE_WEI", int, MIN_RELAYER_BALANCE_WEI),
            "confirmation_timeout": _get("CONFIRMATION_TIMEOUT", float, DEFAULT_CONFIRMATION_TIMEOUT),
            "confirmations": _get("CONFIRMATIONS", int, DEFAULT_CONFIRMATIONS),
            "host": _get("HOST", str, "0.0.0.0"),
            "port": _get("PORT", int, 3001),
            "log_level": _get("LOG_LEVEL", str, "INFO"),
            "json_logs": _get("JSON_LOGS", lambda s: s.strip().lower() in ("1", "true", "yes"), False),
        }
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid relayer configuration: {e}") from e
