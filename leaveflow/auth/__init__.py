"""Auth module — bearer JWT validation and role checks."""
