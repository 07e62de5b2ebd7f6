from __future__ import annotations

import anyio.abc

ByteStream = anyio.abc.ByteStream
