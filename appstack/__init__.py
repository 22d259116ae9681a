"""Application stack configuration resolution and provisioning adapters."""

__version__ = "0.4.0"
