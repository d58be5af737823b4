"""Database, errors, security and logging infrastructure."""
