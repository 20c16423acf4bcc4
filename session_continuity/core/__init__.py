"""Core building blocks: configuration, errors, logging, monitoring, persistence and domain models."""
