"""Test suite for the Satis webhook receiver.

Organized into three categories:

1. core/: Unit tests for core domain logic
   - Minimal dependencies, fast execution
   - Uses in-memory fakes for ports

2. adapters/: Integration tests for adapter implementations
   - Tests against real files, processes and sockets
   - Validates adapter behavior and error handling

3. fakes/: Port implementations for testing
   - In-memory implementations of ConfigLoaderPort, ProcessRunnerPort, etc.
   - Used by core unit tests

CLI and composition-root tests sit at the top level.
"""
