"""notevec: semantic similarity search over a vault of markdown notes."""
