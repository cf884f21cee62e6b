"""Output encoders."""
