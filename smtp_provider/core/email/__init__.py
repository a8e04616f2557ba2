"""Email composition and delivery."""
