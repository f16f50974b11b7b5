"""Pulso: citizen-perception survey distributions."""

__version__ = "0.1.0"
