from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal

from yt_transcriber.types import CostEstimate

# USD per started minute of audio.
RATES_PER_MINUTE = {
    "openai": Decimal("0.006"),
    "deepgram": Decimal("0.0043"),
}
DEFAULT_PROVIDER = "openai"

_FOUR_PLACES = Decimal("0.0001")


def estimate_cost(duration_seconds: float, mode: str, provider: str = DEFAULT_PROVIDER) -> CostEstimate:
    if duration_seconds < 0:
        raise ValueError("duration_seconds must not be negative")

    minutes = math.ceil(duration_seconds / 60)
    if mode == "local" or provider == "local":
        return CostEstimate(minutes=minutes, cost="0.00", is_free=True)

    rate = RATES_PER_MINUTE.get(provider, RATES_PER_MINUTE[DEFAULT_PROVIDER])
    cost = (rate * minutes).quantize(_FOUR_PLACES, rounding=ROUND_HALF_UP)
    return CostEstimate(minutes=minutes, cost=str(cost), is_free=False)
