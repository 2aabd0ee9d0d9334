"""Reasoning bank analytics: pattern graph analytics and a spiking network over stored patterns."""

__version__ = "0.1.0"
