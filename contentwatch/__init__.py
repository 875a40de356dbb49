"""HTTP services for uploading, moderating, storing and reviewing content."""

__version__ = "0.1.0"