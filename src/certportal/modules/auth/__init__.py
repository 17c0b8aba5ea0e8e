"""Authentication module: registration, login and server-side sessions."""
