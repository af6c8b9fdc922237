"""usermatic - batch and interactive provisioning of local accounts and groups."""

__version__ = "1.0.0"
