"""DocVault: document versioning and access-control core."""

__version__ = "1.0.0"
