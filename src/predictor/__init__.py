"""Concurrent paper-prediction sessions: candle classifier bets with simulated balances."""
