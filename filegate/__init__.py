"""FileGate: authorization engine for a multi-tenant file service."""

__version__ = "0.1.0"
