"""Database tables, enums and API schemas."""
