"""
Escrow meta-transaction relayer.

Verifies EIP-712 signed escrow actions and submits them on-chain through the
trusted forwarder contract, paying gas on the signer's behalf.
"""

from .config import RelayerConfig
from .logging_config import setup_logging, get_logger

__version__ = "0.1.0"

__all__ = [
    "RelayerConfig",
    "setup_logging",
    "get_logger",
    "__version__",
]
