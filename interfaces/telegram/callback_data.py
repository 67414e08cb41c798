from __future__ import annotations

from domain.models import CoinSide


FLIP_PREFIX = "flip"


def encode_flip_choice(side: CoinSide, stake: int) -> str:
    """
    Encode a "pick a side" button for a pending flip.

    Format: flip:{side}:{stake}
    """

    return f"{FLIP_PREFIX}:{side.value}:{stake}"


def parse_flip_choice(data: str) -> tuple[CoinSide, int]:
    parts = data.split(":")
    if len(parts) != 3 or parts[0] != FLIP_PREFIX:
        raise ValueError(f"Invalid flip callback data: {data}")

    try:
        side = CoinSide(parts[1])
        stake = int(parts[2])
    except ValueError:
        raise ValueError(f"Invalid flip callback data: {data}") from None
    return side, stake
