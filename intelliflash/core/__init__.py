"""Core collector package: configuration, exceptions and the poll orchestrator."""
