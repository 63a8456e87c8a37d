"""rexray host tooling: known-hosts trust store and service installer."""

__version__ = "0.1.0"
