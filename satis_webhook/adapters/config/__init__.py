"""Configuration loader adapters."""
