"""
Firebase push id generation.

Push ids are the keys Firebase assigns to children appended to a list.
They are 20 characters long: 8 characters encode the creation time in
milliseconds, the remaining 12 are random. Ids sort chronologically, and
ids created within the same millisecond still increase monotonically.
"""

import secrets
import threading
import time

PUSH_CHARS = "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"

_TIMESTAMP_LENGTH = 8
_RANDOM_LENGTH = 12


class PushIdGenerator:
    """
    Generates unique, chronologically ordered child keys.

    Thread-safe: the last timestamp and random suffix are guarded
    so that two ids generated in one millisecond never collide.
    """

    def __init__(self, clock=None):
        self._clock = clock or (lambda: int(time.time() * 1000))
        self._lock = threading.Lock()
        self._last_timestamp = -1
        self._last_random = [0] * _RANDOM_LENGTH

    def generate(self) -> str:
        """Return a new push id."""
        with self._lock:
            now = self._clock()
            if now == self._last_timestamp:
                self._increment_random()
            else:
                self._last_timestamp = now
                self._last_random = [secrets.randbelow(64) for _ in range(_RANDOM_LENGTH)]
            random_part = list(self._last_random)

        timestamp_chars = []
        for _ in range(_TIMESTAMP_LENGTH):
            timestamp_chars.append(PUSH_CHARS[now % 64])
            now //= 64
        if now != 0:
            raise ValueError("Timestamp is out of the push id range")

        return "".join(reversed(timestamp_chars)) + "".join(PUSH_CHARS[i] for i in random_part)

    def _increment_random(self) -> None:
        # Carry over from the last position, like adding one to a base-64 number.
        i = _RANDOM_LENGTH - 1
        while i >= 0 and self._last_random[i] == 63:
            self._last_random[i] = 0
            i -= 1
        if i >= 0:
            self._last_random[i] += 1


_default_generator = PushIdGenerator()


def generate_push_id() -> str:
    """Generate a push id with the process-wide generator."""
    return _default_generator.generate()
