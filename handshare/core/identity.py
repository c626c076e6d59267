from __future__ import annotations

import random
import re
from typing import Optional

IDENTITY_SPACE = 1 << 24

_IDENTITY_RE = re.compile(r"^#[0-9a-fA-F]{6}$")


def is_identity(value: object) -> bool:
    return isinstance(value, str) and bool(_IDENTITY_RE.match(value))


class IdentityAssigner:
    """Draws the session color identity.

    The identity doubles as the stroke color for this client's skeleton, so it
    is rendered as ``#rrggbb``. There is no coordination between peers: two
    clients drawing the same value will be treated as one.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def assign(self) -> str:
        value = self._rng.randrange(IDENTITY_SPACE)
        return f"#{value:06x}"
