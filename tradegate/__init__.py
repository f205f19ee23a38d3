"""tradegate: exchange trader adapters for an automated trading engine.

The package exposes the Cryptopia trader together with its capability table,
configuration loader, and the shared retry/backoff machinery.
"""

__version__ = "0.1.0"
