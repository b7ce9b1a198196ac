"""Repository catalog adapters."""
