"""CLI adapters for operator-initiated rebuilds."""
