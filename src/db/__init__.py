"""Database engine, models and repository."""
