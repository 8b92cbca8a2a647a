"""Run the relayer with uvicorn: ``python -m escrow_relayer``."""

import uvicorn

from .config import RelayerConfig
from .logging_config import setup_logging, get_logger
from .servers import RelayerServer


def main() -> None:
    config = RelayerConfig.from_env()
    setup_logging(log_level=config.log_level, json_logs=config.json_logs)

    app = RelayerServer(config)
    get_logger(__name__).info(
        "relayer.starting",
        relayer=app.chain.address,
        chain_id=config.chain_id,
        escrow=config.escrow_contract,
        port=config.port,
    )
    uvicorn.run(app, host=config.host, port=config.port, log_config=None)


if __name__ == "__main__":
    main()
