"""Graph operations and rate limiting."""
