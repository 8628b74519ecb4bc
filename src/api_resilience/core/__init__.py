"""Core resilience, error and observability modules."""
