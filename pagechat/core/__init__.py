"""Core helpers: token estimation, truncation, SSE buffering."""
