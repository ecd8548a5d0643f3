"""Version ordering and resolution policy."""
