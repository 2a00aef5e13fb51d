"""
Game parameters mirrored from the CasinoGame contract and the derived
numbers the UI shows next to a player's state (multipliers, karma progress).

These are display values only; the contract computes payouts itself.
"""

from typing import Any, Dict

from flip_oracle.models import PlayerState

BASE_MULTIPLIER = 1.9
STREAK_BONUS = 0.1  # per consecutive win
MAX_STREAK_BONUS = 0.5


def streak_multiplier(streak: int) -> float:
    return round(BASE_MULTIPLIER + min(streak * STREAK_BONUS, MAX_STREAK_BONUS), 4)


def game_state_view(state: PlayerState, karma_threshold: int, decimals: int = 18) -> Dict[str, Any]:
    """Player state plus the presentation fields served by ``GET /api/game-state``."""
    unit = 10**decimals
    karma_tokens = state.karma_pool / unit
    karma_target = karma_threshold / unit
    current = streak_multiplier(state.streak)

    view = state.to_dict()
    view.update(
        {
            "streakMultiplier": current,
            "nextMultiplier": streak_multiplier(state.streak + 1),
            "maxMultiplier": round(BASE_MULTIPLIER + MAX_STREAK_BONUS, 4),
            "karmaPoolTokens": karma_tokens,
            "karmaTarget": karma_target,
            "karmaProgress": min(karma_tokens / karma_target * 100, 100) if karma_target else 100,
            "isKarmaReady": state.karma_pool >= karma_threshold,
        }
    )
    return view
