"""Bet sizing and simulated balance arithmetic.

All calculations use Decimal arithmetic. Model probabilities arrive as
float and are converted through str() so 0.8 becomes Decimal("0.8")
rather than its binary expansion.

Per resolved bet:
1. bet_percentage = clamp(min + p * (max - min), min, max)
2. change = (current - previous) / previous
3. correct = sign(change) matches the predicted direction (0 is a miss)
4. balance += balance * bet_percentage * change * direction * leverage
"""

from decimal import Decimal

DEFAULT_MIN_BET = Decimal("0.03")
DEFAULT_MAX_BET = Decimal("0.10")
DEFAULT_LEVERAGE = Decimal("20")

_ZERO = Decimal("0")


def to_decimal(value: float | int | str | Decimal) -> Decimal:
    """Convert a number to Decimal without float binary noise."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def bet_percentage(
    probability: float | Decimal,
    min_bet: Decimal = DEFAULT_MIN_BET,
    max_bet: Decimal = DEFAULT_MAX_BET,
) -> Decimal:
    """Map model confidence linearly onto the [min_bet, max_bet] band.

    The result is a bet-size magnitude only; direction comes from the
    predicted label.

    Args:
        probability: Confidence in the predicted label, expected in [0, 1].
        min_bet: Fraction of balance bet at zero confidence.
        max_bet: Fraction of balance bet at full confidence.

    Returns:
        Fraction of balance to bet, clamped to [min_bet, max_bet].
    """
    raw = min_bet + to_decimal(probability) * (max_bet - min_bet)
    return max(min_bet, min(raw, max_bet))


def percentage_change(previous_price: Decimal, current_price: Decimal) -> Decimal:
    """Relative price move from previous to current.

    A non-positive previous price has no meaningful relative move and is
    reported as no change.
    """
    if previous_price <= _ZERO:
        return _ZERO
    return (current_price - previous_price) / previous_price


def is_prediction_correct(predicted_up: bool, change: Decimal) -> bool:
    """Strict sign match. A zero move is a miss in both directions."""
    if predicted_up:
        return change > _ZERO
    return change < _ZERO


def profit_or_loss(
    balance: Decimal,
    bet_pct: Decimal,
    predicted_up: bool,
    change: Decimal,
    leverage: Decimal = DEFAULT_LEVERAGE,
) -> Decimal:
    """Leveraged P&L of a directional bet of ``balance * bet_pct``."""
    direction = 1 if predicted_up else -1
    bet_amount = balance * bet_pct
    return bet_amount * change * direction * leverage


def update_balance(
    balance: Decimal,
    bet_pct: Decimal,
    predicted_up: bool,
    change: Decimal,
    leverage: Decimal = DEFAULT_LEVERAGE,
) -> Decimal:
    """Apply one bet's P&L to the balance.

    No floor is applied: a large adverse move can push the balance below
    zero.
    """
    return balance + profit_or_loss(balance, bet_pct, predicted_up, change, leverage)
