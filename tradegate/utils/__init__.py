"""Small helpers shared across tradegate modules."""
