"""Per-session control loop."""

from predictor.session.engine import SessionEngine, sleep_unless_stopped

__all__ = ["SessionEngine", "sleep_unless_stopped"]
