"""Email-to-subscription extraction pipeline."""
