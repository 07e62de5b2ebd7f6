from __future__ import annotations

from typing import Tuple

AddressType = Tuple[str, int]
