"""Relay endpoint: truncation, payload building and stream transcoding."""
