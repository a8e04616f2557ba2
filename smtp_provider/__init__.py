"""SMTP message provider: send one email per managed resource."""

__version__ = "0.1.0"
