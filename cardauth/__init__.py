"""cardauth: risk-gated login and single-card provisioning service."""

__version__ = "0.1.0"
