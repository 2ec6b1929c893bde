"""Threat Graph Engine – threat events → account network graph and export document."""

__version__ = "1.0.0"
