"""
Event chain execution engine.

Provides workflow orchestration on top of EventBus, processing events
recursively until no handler returns a further event, and the relay executor
that runs one request through the chain to a terminal outcome.
"""

from typing import AsyncGenerator, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..adapters.evm.requests import RelayRequest
from ..schemas.bases import PipelineStage
from ..schemas.https import RelayResponse
from .events import (
    BaseEvent,
    Dependencies,
    EventBus,
    RelayConfirmedEvent,
    RelayFailedEvent,
    RelayReceivedEvent,
    TERMINAL_EVENTS,
)
from .exceptions import InvalidTransition, RelayerError


class EventChain:
    """
    Executes event-driven workflows by chaining event handler results.

    Events are processed in the caller's task, one after another; nothing
    continues in the background once ``execute`` is exhausted.
    """

    def __init__(self, event_bus: EventBus, deps: Dependencies) -> None:
        """
        Args:
            event_bus: The event bus to dispatch events through.
            deps: Dependencies container to pass to handlers.
        """
        self.event_bus = event_bus
        self.deps = deps

    async def execute(self, initial_event: BaseEvent) -> AsyncGenerator[BaseEvent, None]:
        """
        Execute event chain starting from initial event.

        Yields:
            The initial event, then every event produced by handlers, in order.
        """
        yield initial_event
        async for event in self._process_event(initial_event):
            yield event

    async def _process_event(self, event: BaseEvent) -> AsyncGenerator[BaseEvent, None]:
        async for result in self.event_bus.dispatch(event, self.deps):
            if result is None:
                continue
            if isinstance(result, BaseEvent):
                yield result
                async for e in self._process_event(result):
                    yield e
            else:
                raise TypeError(f"Handler returned unsupported type: {type(result).__name__}")


class RelayOutcome(BaseModel):
    """
    Terminal result of one relay request.

    Attributes:
        stage: ``CONFIRMED`` or ``FAILED``.
        stages: Every stage reached, in order.
        failed_stage: Stage that could not be reached (failures only).
        error: Domain error (failures only).
        result: Response body (successes only).
    """
    stage: PipelineStage
    stages: List[PipelineStage] = Field(default_factory=list)
    failed_stage: Optional[PipelineStage] = None
    error: Optional[RelayerError] = None
    result: Optional[RelayResponse] = None
    tx_hash: Optional[str] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def success(self) -> bool:
        return self.stage == PipelineStage.CONFIRMED


class RelayExecutor:
    """
    Runs relay requests through the pipeline.

    One chain instance per request; no retries and at most one submission.

    Example:
        executor = RelayExecutor(setup_event_bus(), deps)
        outcome = await executor.run(request)
        if outcome.success:
            print(outcome.result.transaction_hash)
    """

    def __init__(self, event_bus: EventBus, deps: Dependencies) -> None:
        self.event_bus = event_bus
        self.deps = deps

    async def run(self, request: RelayRequest) -> RelayOutcome:
        """
        Raises:
            InvalidTransition: The chain ended without a terminal event.
        """
        chain = EventChain(self.event_bus, self.deps)
        stages: List[PipelineStage] = []
        terminal: Optional[BaseEvent] = None

        async for event in chain.execute(RelayReceivedEvent(request=request)):
            stages.append(event.stage)
            if isinstance(event, TERMINAL_EVENTS):
                terminal = event

        if isinstance(terminal, RelayConfirmedEvent):
            return RelayOutcome(
                stage=PipelineStage.CONFIRMED,
                stages=stages,
                result=terminal.result,
                tx_hash=terminal.receipt.transaction_hash,
            )
        if isinstance(terminal, RelayFailedEvent):
            return RelayOutcome(
                stage=PipelineStage.FAILED,
                stages=stages,
                failed_stage=terminal.failed_stage,
                error=terminal.error,
                tx_hash=terminal.tx_hash,
            )
        raise InvalidTransition(
            f"Relay chain for {type(request).__name__} stopped at {stages[-1].value} without a terminal event"
        )
