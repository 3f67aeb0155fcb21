"""Application layer - services and workers of the image pipeline."""
