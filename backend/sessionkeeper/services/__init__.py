"""Application services for the session lifecycle."""
