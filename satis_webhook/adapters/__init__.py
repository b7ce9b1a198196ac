"""External adapters for the Satis webhook receiver.

This package contains all external integrations (YAML files, the build
process, HTTP servers, etc.) and provides implementations of the core
port interfaces.

Adapter Organization:

- config/: Adapters for loading config.yml
- catalog/: Adapters for reading the build tool's repository list
- process/: Adapters for spawning the build command
- cli/: Command-line rebuild command
- webhook/: HTTP webhook receiver for source-control hosts
"""
