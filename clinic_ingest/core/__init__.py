"""Configuration, database, exceptions and external service clients."""
