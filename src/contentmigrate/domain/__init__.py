"""Domain layer for contentmigrate."""
