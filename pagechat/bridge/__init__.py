"""Port bridge between the UI side and the relay."""
