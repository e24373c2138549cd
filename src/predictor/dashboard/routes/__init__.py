"""Health API route modules."""
