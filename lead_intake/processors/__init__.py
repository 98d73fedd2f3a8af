"""Per-message processing stages."""
