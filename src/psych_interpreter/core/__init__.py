"""Core interpretation pipeline: registry, parsing, orchestration."""
