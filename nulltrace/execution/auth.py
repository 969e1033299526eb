"""nulltrace/execution/auth.py

Time-based one-time code for authenticating requests to the operator.

Counter-based HOTP over 180 second windows (HMAC-SHA1, dynamic truncation,
6 digits). Stateless: a pure function of wall-clock time and the secret.
"""

from __future__ import annotations

import hashlib
import hmac
import struct
import time
from typing import Optional

AUTH_HEADER = "x-null-client-secret"
AUTH_STEP_SECONDS = 180
AUTH_DIGITS = 6


def hotp(secret: bytes, counter: int, digits: int = AUTH_DIGITS) -> str:
    """Derive a zero-padded numeric code for `counter`."""
    digest = hmac.new(secret, struct.pack(">Q", counter), hashlib.sha1).digest()
    offset = digest[-1] & 0x0F
    code = struct.unpack(">I", digest[offset:offset + 4])[0] & 0x7FFFFFFF
    return str(code % (10 ** digits)).zfill(digits)


def time_window(now: Optional[float] = None, step: int = AUTH_STEP_SECONDS) -> int:
    if now is None:
        now = time.time()
    return int(now // step)


def get_auth_token(
    shared_secret: str,
    now: Optional[float] = None,
    step: int = AUTH_STEP_SECONDS,
) -> str:
    """Return the code for the window containing `now` (default: current time).

    Args:
        shared_secret: ASCII secret shared with the operator.
        now: Unix time in seconds.
        step: Window length in seconds.
    """
    return hotp(shared_secret.encode("ascii"), time_window(now, step))
