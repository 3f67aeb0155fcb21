"""contentmigrate - image acquisition pipeline for content migrations."""

__version__ = "0.1.0"
