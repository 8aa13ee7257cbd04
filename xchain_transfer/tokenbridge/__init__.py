"""Wormhole Token Bridge lock-and-mint transfers between EVM chains."""
