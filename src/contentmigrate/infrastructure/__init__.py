"""Infrastructure layer - external services, persistence, observability."""
