"""Authentication: JWT bearer tokens and role checks."""
