"""
auth/hashing.py -- Password hashing capability (bcrypt).

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error.

Hashing and verification can fail independently of business logic (corrupt
digest, backend error). Both raise HashingError; callers turn that into an
Internal error rather than an authentication failure, so a broken digest is
never reported as "wrong password".
"""

from __future__ import annotations

import bcrypt

# bcrypt only looks at the first 72 bytes; 5.x raises on anything longer.
MAX_PASSWORD_BYTES = 72


class HashingError(Exception):
    """The hashing backend failed or the stored digest is unusable."""


class PasswordHasher:
    """hash(plaintext) -> digest and verify(plaintext, digest) -> bool.

    rounds defaults to bcrypt's own default; tests pass the minimum (4) to
    keep the suite fast.
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        # Timing equalization: verify against this digest when the user does
        # not exist so response time does not reveal which usernames exist.
        self._dummy_digest = self.hash("modelgate_timing_dummy")

    def hash(self, plain: str) -> str:
        try:
            return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")
        except (ValueError, TypeError) as exc:
            raise HashingError("Could not hash password.") from exc

    def verify(self, plain: str, digest: str) -> bool:
        if not fits(plain):
            # No stored digest can match; still spend the bcrypt work.
            self.burn(plain[:MAX_PASSWORD_BYTES // 4])
            return False
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), digest.encode("utf-8"))
        except (ValueError, TypeError) as exc:
            raise HashingError("Could not verify password.") from exc

    def burn(self, plain: str) -> None:
        """Spend the same bcrypt work as a real verify without a real digest."""
        self.verify(plain, self._dummy_digest)


def fits(plain: str) -> bool:
    """True if plain is short enough for bcrypt to use every byte."""
    return len(plain.encode("utf-8")) <= MAX_PASSWORD_BYTES
