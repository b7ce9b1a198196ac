"""Build process runner adapters."""
