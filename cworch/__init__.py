"""Transaction building, response parsing and storage helpers for CosmWasm chains."""

__version__ = "0.1.0"
__all__ = ["errors", "snapshots", "tx_builder", "tx_resp"]