"""
Escrow Relayer Server - Event-driven FastAPI wrapper.

Exposes the relay pipeline over HTTP: health, nonce lookup and the four
meta-transaction endpoints. Request bodies are validated into relay request
variants and handed to the relay executor; pipeline failures become 500
responses with a descriptive message.
"""

import time
from datetime import datetime, timezone
from typing import Callable, Optional, Type

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..adapters.evm.client import ChainClient
from ..adapters.evm.constants import is_valid_address
from ..adapters.evm.requests import (
    BaseRelayRequest,
    CreateEscrowRequest,
    FundEscrowRequest,
    ConfirmDeliveryRequest,
    StoreDocumentRequest,
)
from ..adapters.evm.verifies import SignatureVerifier
from ..config import RelayerConfig
from ..engine.events import BaseEvent, Dependencies, EventBus
from ..engine.exceptions import ChainError, RequestValidationError
from ..engine.executors import RelayExecutor
from ..engine.nonces import NonceAuthority
from ..engine.preflight import PreflightChecker
from ..logging_config import get_logger
from ..schemas.https import ErrorResponse, HealthResponse, NonceResponse
from .flows import setup_event_bus
from .limits import RateLimiter
from .middleware import setup_middleware

logger = get_logger(__name__)


RELAY_ROUTES = {
    "/relay/create-escrow": CreateEscrowRequest,
    "/relay/fund-escrow": FundEscrowRequest,
    "/relay/confirm-delivery": ConfirmDeliveryRequest,
    "/relay/store-document": StoreDocumentRequest,
}


class RelayerServer(FastAPI):
    """FastAPI server for the escrow meta-transaction relayer."""

    def __init__(
        self,
        config: RelayerConfig,
        chain: Optional[ChainClient] = None,
        rate_limiter: Optional[RateLimiter] = None,
        event_bus: Optional[EventBus] = None,
        clock: Callable[[], float] = time.time,
        **fastapi_kwargs
    ):
        """Initialize the relayer server.

        Args:
            config: Immutable relayer configuration.
            chain: Chain client (default: built from ``config``).
            rate_limiter: Request limiter (default: ``config.rate_limit_points`` per ``config.rate_limit_window``).
            event_bus: Relay event bus (default: built-in handlers with logging hooks).
            clock: Unix time source, used for uptime and deadline checks.
            **fastapi_kwargs: FastAPI arguments (title, version, etc.)
        """
        self.config = config
        self.chain = chain or ChainClient.from_config(config)
        self.rate_limiter = rate_limiter or RateLimiter(
            points=config.rate_limit_points,
            duration=config.rate_limit_window,
        )
        self.depends = Dependencies(
            chain=self.chain,
            verifier=SignatureVerifier(
                chain_id=config.chain_id,
                escrow_contract=config.escrow_contract,
                domain_name=config.domain_name,
                domain_version=config.domain_version,
            ),
            nonces=NonceAuthority(self.chain),
            preflight=PreflightChecker(
                self.chain,
                min_relayer_balance_wei=config.min_relayer_balance_wei,
                clock=clock,
            ),
            confirmations=config.confirmations,
            confirmation_timeout=config.confirmation_timeout,
        )
        self.event_bus: EventBus = event_bus or setup_event_bus()
        self.executor = RelayExecutor(self.event_bus, self.depends)
        self._clock = clock
        self._started_at = clock()

        fastapi_kwargs.setdefault("title", "Escrow Relayer")
        super().__init__(**fastapi_kwargs)

        setup_middleware(
            self,
            limiter=self.rate_limiter,
            api_key=config.api_key,
            cors_origin=config.cors_origin,
        )
        self.add_exception_handler(StarletteHTTPException, self._http_exception_handler)

        self._setup_health_endpoint()
        self._setup_nonce_endpoint()
        self._setup_relay_endpoints()

    def add_hook(self, event_class: type[BaseEvent], hook: Callable) -> None:
        """Register event hook for side effects.

        Example:
            ```python
            async def notify(event, deps):
                await webhook.post(event.result.to_dict())

            app.add_hook(RelayConfirmedEvent, notify)
            ```
        """
        self.event_bus.hook(event_class, hook)

    def hook(self, event_class: type[BaseEvent]) -> Callable:
        """Decorator for registering event hooks.

        Example:
            @app.hook(RelayFailedEvent)
            async def on_failed(event, deps):
                alerts.send(event.error.code)
        """
        def decorator(hook_func: Callable) -> Callable:
            self.event_bus.hook(event_class, hook_func)
            return hook_func
        return decorator

    @staticmethod
    async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            return JSONResponse(status_code=404, content=ErrorResponse(error="Endpoint not found").to_dict())
        return JSONResponse(status_code=exc.status_code, content=ErrorResponse(error=str(exc.detail)).to_dict())

    def _setup_health_endpoint(self) -> None:
        @self.get("/health")
        async def health():
            body = HealthResponse(
                status="healthy",
                timestamp=datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
                uptime=round(self._clock() - self._started_at, 3),
            )
            return JSONResponse(status_code=200, content=body.to_dict())

    def _setup_nonce_endpoint(self) -> None:
        async def read_nonce(address: str = "") -> JSONResponse:
            if not is_valid_address(address):
                raise RequestValidationError("Invalid address format")
            try:
                nonce = await self.depends.nonces.current_nonce(address)
            except ChainError as e:
                logger.error("nonce.read_failed", address=address, code=e.code, error=e.message)
                return JSONResponse(status_code=500, content=ErrorResponse(error="Failed to get nonce").to_dict())
            return JSONResponse(status_code=200, content=NonceResponse(nonce=str(nonce)).to_dict())

        # an empty address never reaches the parameterized route
        self.add_api_route("/nonce/{address}", read_nonce, methods=["GET"])
        self.add_api_route("/nonce/", read_nonce, methods=["GET"])
        self.add_api_route("/nonce", read_nonce, methods=["GET"])

    def _setup_relay_endpoints(self) -> None:
        for path, model in RELAY_ROUTES.items():
            self._add_relay_route(path, model)

    def _add_relay_route(self, path: str, model: Type[BaseRelayRequest]) -> None:
        @self.post(path, name=model.primary_type)
        async def relay(request: Request):
            relay_request = await self._parse_relay_request(request, model)
            outcome = await self.executor.run(relay_request)
            if outcome.success:
                return JSONResponse(status_code=200, content=outcome.result.to_dict())

            body = ErrorResponse(
                error="Failed to relay transaction",
                details=outcome.error.message,
                code=outcome.error.code,
                stage=outcome.failed_stage.value,
                transaction_hash=outcome.tx_hash,
            )
            return JSONResponse(status_code=500, content=body.to_dict())

    @staticmethod
    async def _parse_relay_request(request: Request, model: Type[BaseRelayRequest]) -> BaseRelayRequest:
        """
        Raises:
            RequestValidationError: Body is not a JSON object, misses a field or carries a malformed value.
        """
        try:
            payload = await request.json()
        except ValueError as e:
            raise RequestValidationError("Invalid request", {"body": "Request body must be JSON"}) from e
        if not isinstance(payload, dict):
            raise RequestValidationError("Invalid request", {"body": "Request body must be a JSON object"})
        payload.pop("action", None)
        # empty values count as missing
        payload = {k: v for k, v in payload.items() if v not in ("", None)}

        try:
            return model.model_validate(payload)
        except ValidationError as e:
            missing = [".".join(str(p) for p in err["loc"]) for err in e.errors() if err["type"] == "missing"]
            if missing:
                raise RequestValidationError("Missing required fields", {"fields": missing}) from e
            invalid = {
                ".".join(str(p) for p in err["loc"]): err["msg"] for err in e.errors()
            }
            raise RequestValidationError("Invalid request", invalid) from e
