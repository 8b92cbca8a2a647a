"""Relay pipeline: nonce authority, preflight checks, events and the executor."""
