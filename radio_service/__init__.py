"""Radio station directory service."""
