"""Service layer: parsing, recognition, persistence and the bill lifecycle."""
