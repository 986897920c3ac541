"""Admin HTTP surface over the saved focus state and run traces."""
