"""
Event-driven relay pipeline with typed events and clear data flow.

Each relay request moves through one event per pipeline stage. Events carry
the request and everything produced so far, handlers return the next event,
and dependencies are injected separately from business data.

    RelayReceivedEvent -> RelayVerifiedEvent -> RelayPreflightedEvent
        -> GasEstimatedEvent -> SimulatedEvent -> SubmittedEvent
        -> RelayConfirmedEvent | RelayFailedEvent
"""

import asyncio
import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Callable, Optional, Awaitable, AsyncGenerator, ClassVar

from pydantic import BaseModel, ConfigDict

from ..adapters.evm.client import ChainClient
from ..adapters.evm.constants import DEFAULT_CONFIRMATION_TIMEOUT, DEFAULT_CONFIRMATIONS
from ..adapters.evm.requests import RelayRequest
from ..adapters.evm.schemas import (
    ContractCall,
    EscrowSnapshot,
    GasPlan,
    PreparedCall,
    RelayReceipt,
    SignatureVerificationResult,
)
from ..adapters.evm.verifies import SignatureVerifier
from ..schemas.bases import PipelineStage
from ..schemas.https import RelayResponse
from .exceptions import RelayerError
from .nonces import NonceAuthority
from .preflight import PreflightChecker

# ==================== Base Event ====================

class BaseEvent(ABC):
    """Base class for all events in the system."""

    stage: ClassVar[PipelineStage]

    @abstractmethod
    def __repr__(self) -> str:
        """String representation of the event."""
        pass


# ==================== Pipeline Events ====================

class RelayReceivedEvent(BaseModel, BaseEvent):
    """External trigger: a validated relay request entered the pipeline."""
    stage: ClassVar[PipelineStage] = PipelineStage.RECEIVED
    request: RelayRequest

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"RelayReceivedEvent(action={self.request.action}, actor={self.request.actor})"


class RelayVerifiedEvent(BaseModel, BaseEvent):
    """Signature recovered to the request actor under the live nonce."""
    stage: ClassVar[PipelineStage] = PipelineStage.VERIFIED
    request: RelayRequest
    verification: SignatureVerificationResult

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"RelayVerifiedEvent(action={self.request.action}, nonce={self.verification.nonce})"


class RelayPreflightedEvent(BaseModel, BaseEvent):
    """All preflight guards passed."""
    stage: ClassVar[PipelineStage] = PipelineStage.PREFLIGHTED
    request: RelayRequest
    escrow: Optional[EscrowSnapshot] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"RelayPreflightedEvent(action={self.request.action})"


class GasEstimatedEvent(BaseModel, BaseEvent):
    """Gas units estimated and gas price planned for the contract call."""
    stage: ClassVar[PipelineStage] = PipelineStage.GAS_ESTIMATED
    request: RelayRequest
    call: ContractCall
    gas_plan: GasPlan

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"GasEstimatedEvent(function={self.call.function_name}, gas={self.gas_plan.gas_limit})"


class SimulatedEvent(BaseModel, BaseEvent):
    """The call succeeded under ``eth_call`` at its gas plan."""
    stage: ClassVar[PipelineStage] = PipelineStage.SIMULATED
    request: RelayRequest
    prepared: PreparedCall

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"SimulatedEvent(function={self.prepared.call.function_name})"


class SubmittedEvent(BaseModel, BaseEvent):
    """Transaction broadcast from the relayer account."""
    stage: ClassVar[PipelineStage] = PipelineStage.SUBMITTED
    request: RelayRequest
    tx_hash: str

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"SubmittedEvent(tx_hash={self.tx_hash})"


# ==================== Terminal Events ====================

class RelayConfirmedEvent(BaseModel, BaseEvent):
    """Terminal success: the transaction is confirmed and the response is assembled."""
    stage: ClassVar[PipelineStage] = PipelineStage.CONFIRMED
    request: RelayRequest
    receipt: RelayReceipt
    result: RelayResponse
    escrow_id_from_log: bool = True

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"RelayConfirmedEvent(tx_hash={self.receipt.transaction_hash})"


class RelayFailedEvent(BaseModel, BaseEvent):
    """
    Terminal failure.

    Attributes:
        failed_stage: The stage the request could not reach.
        error: Domain error describing the failure.
        tx_hash: Set when the failure happened after submission.
    """
    stage: ClassVar[PipelineStage] = PipelineStage.FAILED
    request: RelayRequest
    failed_stage: PipelineStage
    error: RelayerError
    tx_hash: Optional[str] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"RelayFailedEvent(stage={self.failed_stage.value}, error={self.error.code})"


TERMINAL_EVENTS = (RelayConfirmedEvent, RelayFailedEvent)


# ==================== Dependencies Container ====================

@dataclass(frozen=True)
class Dependencies:
    """Container for infrastructure dependencies (read-only)."""
    chain: ChainClient
    verifier: SignatureVerifier
    nonces: NonceAuthority
    preflight: PreflightChecker
    confirmations: int = DEFAULT_CONFIRMATIONS
    confirmation_timeout: float = DEFAULT_CONFIRMATION_TIMEOUT


# ==================== Event Bus ====================

EventHandlerFunc = Callable[[BaseEvent, Dependencies], Awaitable[Optional[BaseEvent]]]
EventHookFunc = Callable[[BaseEvent, Dependencies], Awaitable[None]]


class EventBus:
    """Event dispatcher for publishing and subscribing to events."""

    def __init__(self) -> None:
        """Initialize with empty subscribers and hooks."""
        self._subscribers: Dict[type, list[EventHandlerFunc]] = {}
        self._hooks: Dict[type, list[EventHookFunc]] = {}

    def subscribe(self, event_class: type[BaseEvent], handler: EventHandlerFunc) -> None:
        """
        Register an async handler for the given event class.

        Args:
            event_class: The event class to subscribe to.
            handler: The async handler function to call when the event is published.

        Raises:
            TypeError: If handler is not a coroutine function.
        """
        if not inspect.iscoroutinefunction(handler):
            raise TypeError(f"Handler must be a coroutine function, got {type(handler).__name__}")

        self._subscribers.setdefault(event_class, []).append(handler)

    def hook(self, event_class: type[BaseEvent], hook_func: EventHookFunc) -> None:
        """
        Register a hook for the given event class.
        Hooks are executed before subscribers when the event is dispatched.

        Raises:
            TypeError: If hook_func is not a coroutine function.
        """
        if not inspect.iscoroutinefunction(hook_func):
            raise TypeError(f"Hook must be a coroutine function, got {type(hook_func).__name__}")

        self._hooks.setdefault(event_class, []).append(hook_func)

    async def dispatch(self, event: BaseEvent, deps: Dependencies) -> AsyncGenerator[Optional[BaseEvent], None]:
        """
        Dispatch an event to all registered hooks and subscribers.
        Hooks run first, then all subscribers run in parallel.

        Yields:
            Results from all subscribers as they complete. Yields nothing if no subscribers are registered.
        """
        hooks = self._hooks.get(type(event), [])
        await asyncio.gather(*(hook(event, deps) for hook in hooks))

        handlers = self._subscribers.get(type(event), [])
        if not handlers:
            return

        tasks = [handler(event, deps) for handler in handlers]
        for coro in asyncio.as_completed(tasks):
            result = await coro
            yield result
