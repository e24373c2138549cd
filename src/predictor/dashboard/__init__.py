"""Health API -- FastAPI app exposing per-session status."""
