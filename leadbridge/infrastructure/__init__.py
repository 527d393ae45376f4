"""Infrastructure adapters: upstream HTTP clients, enrichment, persistence and observability."""
