"""Document identifier generator.

Generates lexicographically sortable identifiers in ULID layout: 26
characters of Crockford base32, the first 10 encoding a millisecond
timestamp and the last 16 encoding 80 random bits.
"""

import random
import re
import secrets
import threading
import time

# Crockford base32, no I, L, O or U
ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"

TIME_LENGTH = 10
RANDOM_LENGTH = 16
ID_LENGTH = TIME_LENGTH + RANDOM_LENGTH

TIME_BITS = 48
RANDOM_BITS = 80
MAX_TIMESTAMP = (1 << TIME_BITS) - 1
MAX_RANDOM = (1 << RANDOM_BITS) - 1

ID_PATTERN = re.compile(rf"^[0-7][{ALPHABET}]{{{ID_LENGTH - 1}}}$")


def _encode(value: int, length: int) -> str:
    chars = []
    for _ in range(length):
        value, remainder = divmod(value, 32)
        chars.append(ALPHABET[remainder])
    return "".join(reversed(chars))


class IdGenerator:
    """Monotonic generator of sortable document identifiers.

    Identifiers from one instance are strictly increasing. When two calls
    land in the same millisecond (or the clock steps backwards) the random
    part of the previous identifier is incremented instead of redrawn.

    Generation never fails: if the system entropy source is unavailable the
    random part comes from a process-local counter mixed with the ``random``
    module, and if the clock is unavailable the last timestamp is reused.

    Example:
        >>> generator = IdGenerator()
        >>> a, b = generator.next(), generator.next()
        >>> a < b
        True
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last_timestamp = -1
        self._last_random = 0
        self._fallback_counter = 0

    @classmethod
    def validate(cls, value: object) -> bool:
        """Check whether a value has the identifier shape."""
        return isinstance(value, str) and bool(ID_PATTERN.match(value))

    def next(self) -> str:
        """Generate the next identifier."""
        with self._lock:
            timestamp = self._timestamp()
            if timestamp <= self._last_timestamp:
                timestamp = self._last_timestamp
                randomness = self._last_random + 1
                if randomness > MAX_RANDOM:
                    # Random space for this millisecond is spent; borrow the next one
                    timestamp = min(timestamp + 1, MAX_TIMESTAMP)
                    randomness = self._random_bits()
            else:
                randomness = self._random_bits()

            self._last_timestamp = timestamp
            self._last_random = randomness

        return _encode(timestamp, TIME_LENGTH) + _encode(randomness, RANDOM_LENGTH)

    __call__ = next

    def _timestamp(self) -> int:
        try:
            return min(time.time_ns() // 1_000_000, MAX_TIMESTAMP)
        except OSError:
            return max(self._last_timestamp, 0)

    def _random_bits(self) -> int:
        try:
            return secrets.randbits(RANDOM_BITS)
        except (NotImplementedError, OSError):
            self._fallback_counter += 1
            # Keep headroom below MAX_RANDOM so same-millisecond increments fit
            counter = (self._fallback_counter & 0xFFFFFF) << 48
            return counter | random.getrandbits(47)


_default_generator = IdGenerator()


def generate_id() -> str:
    """Generate an identifier from the process-wide default generator."""
    return _default_generator.next()
