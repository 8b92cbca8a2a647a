from escrow_relayer import RelayerConfig, setup_logging
from escrow_relayer.servers import RelayerServer
from escrow_relayer.engine.events import RelayConfirmedEvent, RelayFailedEvent


config = RelayerConfig.from_env()
setup_logging(log_level="DEBUG", json_logs=False)

app = RelayerServer(config, title="Escrow Relayer")


# Optional: Add event hooks for custom logic
@app.hook(RelayConfirmedEvent)
async def on_confirmed(event, deps):
    """Report relays that landed on-chain."""
    print(f"✅ {event.request.action} confirmed: {event.result.transaction_hash}")


@app.hook(RelayFailedEvent)
async def on_failed(event, deps):
    """Report relays that stopped before confirmation."""
    print(f"❌ {event.request.action} failed at {event.failed_stage.value}: {event.error.message}")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="localhost", port=config.port, log_level="debug")
