"""
Built-in event handlers for the relay pipeline.

Implements the relay flow: verify → preflight → estimate gas → simulate →
submit → confirm. Each handler converts domain errors into a
``RelayFailedEvent`` naming the stage that could not be reached, so every
terminal failure is an event rather than an exception.
"""

from ..adapters.evm.constants import ESCROW_CREATED_TOPIC
from ..adapters.evm.requests import CreateEscrowRequest
from ..engine.events import (
    EventBus,
    Dependencies,
    BaseEvent,
    RelayReceivedEvent,
    RelayVerifiedEvent,
    RelayPreflightedEvent,
    GasEstimatedEvent,
    SimulatedEvent,
    SubmittedEvent,
    RelayConfirmedEvent,
    RelayFailedEvent,
)
from ..engine.exceptions import (
    RelayerError,
    ChainError,
    ConfirmationTimeout,
    GasEstimationFailed,
    SimulationFailed,
    SubmissionFailed,
    TransactionReverted,
)
from ..logging_config import get_logger
from ..schemas.bases import PipelineStage
from ..schemas.https import RelayResponse

logger = get_logger(__name__)


def _chain_details(error: ChainError) -> dict:
    details = dict(error.details)
    details.setdefault("cause", error.message)
    return details


# ==================== Event Handlers ====================

async def handle_received(
    event: RelayReceivedEvent,
    deps: Dependencies
) -> RelayVerifiedEvent | RelayFailedEvent:
    """Reject malformed signatures, then verify against the actor's live nonce."""
    request = event.request
    try:
        deps.verifier.ensure_well_formed(request)
        nonce = await deps.nonces.current_nonce(request.actor)
        verification = deps.verifier.verify(request, nonce)
    except RelayerError as e:
        return RelayFailedEvent(request=request, failed_stage=PipelineStage.VERIFIED, error=e)
    return RelayVerifiedEvent(request=request, verification=verification)


async def handle_verified(
    event: RelayVerifiedEvent,
    deps: Dependencies
) -> RelayPreflightedEvent | RelayFailedEvent:
    """Run variant preflight guards."""
    try:
        escrow = await deps.preflight.run(event.request)
    except RelayerError as e:
        return RelayFailedEvent(request=event.request, failed_stage=PipelineStage.PREFLIGHTED, error=e)
    return RelayPreflightedEvent(request=event.request, escrow=escrow)


async def handle_preflighted(
    event: RelayPreflightedEvent,
    deps: Dependencies
) -> GasEstimatedEvent | RelayFailedEvent:
    """Estimate gas for the relayer-contract call and plan the gas price."""
    call = event.request.contract_call()
    try:
        gas_limit = await deps.chain.estimate_gas(call)
        gas_plan = await deps.chain.plan_gas(gas_limit)
    except ChainError as e:
        error = GasEstimationFailed(f"Gas estimation failed: {e.message}", _chain_details(e))
        return RelayFailedEvent(request=event.request, failed_stage=PipelineStage.GAS_ESTIMATED, error=error)
    return GasEstimatedEvent(request=event.request, call=call, gas_plan=gas_plan)


async def handle_gas_estimated(
    event: GasEstimatedEvent,
    deps: Dependencies
) -> SimulatedEvent | RelayFailedEvent:
    """Simulate the call at the planned gas and price."""
    try:
        prepared = await deps.chain.simulate(event.call, event.gas_plan)
    except ChainError as e:
        revert_reason = getattr(e, "revert_reason", None)
        error = SimulationFailed(
            f"Simulation failed: {revert_reason or e.message}",
            revert_reason=revert_reason,
            details=_chain_details(e),
        )
        return RelayFailedEvent(request=event.request, failed_stage=PipelineStage.SIMULATED, error=error)
    return SimulatedEvent(request=event.request, prepared=prepared)


async def handle_simulated(
    event: SimulatedEvent,
    deps: Dependencies
) -> SubmittedEvent | RelayFailedEvent:
    """Submit the simulated call. Exactly one submission per request."""
    try:
        tx_hash = await deps.chain.submit(event.prepared)
    except ChainError as e:
        error = SubmissionFailed(f"Submission failed: {e.message}", _chain_details(e))
        return RelayFailedEvent(request=event.request, failed_stage=PipelineStage.SUBMITTED, error=error)
    return SubmittedEvent(request=event.request, tx_hash=tx_hash)


async def handle_submitted(
    event: SubmittedEvent,
    deps: Dependencies
) -> RelayConfirmedEvent | RelayFailedEvent:
    """
    Await confirmation and assemble the response.

    For create-escrow requests the escrow id comes from the first
    ``EscrowCreated`` log. When no such log is found the transaction hash is
    returned in its place; the transaction itself did succeed.
    """
    request = event.request
    try:
        receipt = await deps.chain.await_receipt(
            event.tx_hash,
            confirmations=deps.confirmations,
            timeout=deps.confirmation_timeout,
        )
    except (ConfirmationTimeout, ChainError) as e:
        return RelayFailedEvent(
            request=request, failed_stage=PipelineStage.CONFIRMED, error=e, tx_hash=event.tx_hash
        )

    if receipt.status != 1:
        error = TransactionReverted(
            "Transaction reverted on-chain",
            {"transactionHash": receipt.transaction_hash, "blockNumber": receipt.block_number},
        )
        return RelayFailedEvent(
            request=request, failed_stage=PipelineStage.CONFIRMED, error=error, tx_hash=event.tx_hash
        )

    escrow_id = None
    from_log = True
    if isinstance(request, CreateEscrowRequest):
        escrow_id = receipt.first_topic_match(ESCROW_CREATED_TOPIC)
        if escrow_id is None:
            from_log = False
            escrow_id = receipt.transaction_hash
            logger.warning(
                "relay.escrow_id_fallback",
                tx_hash=receipt.transaction_hash,
                reason="EscrowCreated log not found in receipt",
            )

    return RelayConfirmedEvent(
        request=request,
        receipt=receipt,
        escrow_id_from_log=from_log,
        result=RelayResponse(
            success=True,
            escrow_id=escrow_id,
            transaction_hash=receipt.transaction_hash,
            gas_used=str(receipt.gas_used),
        ),
    )


# ==================== Logging Hooks ====================

async def log_stage(event: BaseEvent, deps: Dependencies) -> None:
    request = event.request
    logger.info(f"relay.{event.stage.value}", action=request.action, actor=request.actor)


async def log_submitted(event: SubmittedEvent, deps: Dependencies) -> None:
    logger.info("relay.submitted", action=event.request.action, tx_hash=event.tx_hash)


async def log_confirmed(event: RelayConfirmedEvent, deps: Dependencies) -> None:
    logger.info(
        "relay.confirmed",
        action=event.request.action,
        tx_hash=event.receipt.transaction_hash,
        gas_used=event.receipt.gas_used,
        block_number=event.receipt.block_number,
    )


async def log_failed(event: RelayFailedEvent, deps: Dependencies) -> None:
    logger.warning(
        "relay.failed",
        action=event.request.action,
        actor=event.request.actor,
        stage=event.failed_stage.value,
        code=event.error.code,
        error=event.error.message,
        tx_hash=event.tx_hash,
    )


# ==================== Event Bus Setup ====================

def setup_event_bus(enable_logging_hooks: bool = True) -> EventBus:
    """Initialize event bus with built-in handlers.

    Args:
        enable_logging_hooks: If True, every stage event is logged.
    """
    event_bus = EventBus()

    event_bus.subscribe(RelayReceivedEvent, handle_received)
    event_bus.subscribe(RelayVerifiedEvent, handle_verified)
    event_bus.subscribe(RelayPreflightedEvent, handle_preflighted)
    event_bus.subscribe(GasEstimatedEvent, handle_gas_estimated)
    event_bus.subscribe(SimulatedEvent, handle_simulated)
    event_bus.subscribe(SubmittedEvent, handle_submitted)

    if enable_logging_hooks:
        for event_class in (RelayReceivedEvent, RelayVerifiedEvent, RelayPreflightedEvent, GasEstimatedEvent, SimulatedEvent):
            event_bus.hook(event_class, log_stage)
        event_bus.hook(SubmittedEvent, log_submitted)
        event_bus.hook(RelayConfirmedEvent, log_confirmed)
        event_bus.hook(RelayFailedEvent, log_failed)

    return event_bus
