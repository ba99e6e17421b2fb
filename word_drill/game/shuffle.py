from __future__ import annotations

import random
from typing import Sequence, TypeVar

T = TypeVar("T")


def shuffled(items: Sequence[T], rng: random.Random | None = None) -> list[T]:
    """Fisher-Yates shuffle into a new list; the input is left untouched."""
    rand = rng or random
    out = list(items)
    for i in range(len(out) - 1, 0, -1):
        j = rand.randint(0, i)
        out[i], out[j] = out[j], out[i]
    return out
