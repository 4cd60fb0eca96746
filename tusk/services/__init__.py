"""Business-logic services: extraction, ingestion, retrieval and generation."""
