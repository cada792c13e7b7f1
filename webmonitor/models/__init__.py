"""External model clients."""
