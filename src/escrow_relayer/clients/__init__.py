"""
Client module for gasless escrow actions.

Signs escrow meta-transactions locally and submits them through a relayer.
"""

from .http_client import GaslessClient

__all__ = ["GaslessClient"]
