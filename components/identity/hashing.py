from __future__ import annotations
import hashlib
import hmac
import secrets
from dataclasses import dataclass
from typing import List

from .contracts import PasswordHasherPort
from .errors import WeakPassword

SCHEME = "pbkdf2_sha256"


class PasswordHasher(PasswordHasherPort):
    """
    Salted PBKDF2-SHA256 hasher.
    Encoded form: pbkdf2_sha256$<iterations>$<salt>$<hex digest>
    A fresh random salt is drawn on every call to hash().
    """
    def __init__(self, iterations: int = 260_000, salt_bytes: int = 16):
        if iterations < 1:
            raise ValueError("iterations must be positive")
        self.iterations = iterations
        self.salt_bytes = salt_bytes

    def _derive(self, plaintext: str, salt: str, iterations: int) -> bytes:
        return hashlib.pbkdf2_hmac("sha256", plaintext.encode("utf-8"), salt.encode("ascii"), iterations, dklen=32)

    def hash(self, plaintext: str) -> str:
        salt = secrets.token_hex(self.salt_bytes)
        dk = self._derive(plaintext, salt, self.iterations)
        return f"{SCHEME}${self.iterations}${salt}${dk.hex()}"

    def verify(self, encoded: str, plaintext: str) -> bool:
        try:
            scheme, iters_s, salt, hex_dk = encoded.split("$")
            if scheme != SCHEME:
                return False
            expected = bytes.fromhex(hex_dk)
            dk = self._derive(plaintext, salt, int(iters_s))
        except (ValueError, TypeError, UnicodeEncodeError):
            return False
        return hmac.compare_digest(dk, expected)

    def needs_rehash(self, encoded: str) -> bool:
        try:
            _, iters_s, _, _ = encoded.split("$")
            return int(iters_s) != self.iterations
        except ValueError:
            return True


@dataclass(frozen=True)
class PasswordPolicy:
    min_length: int = 6
    require_digit: bool = True
    require_lowercase: bool = True
    require_uppercase: bool = True
    require_non_alphanumeric: bool = True

    def failures(self, password: str) -> List[str]:
        out: List[str] = []
        if len(password) < self.min_length:
            out.append(f"min_length:{self.min_length}")
        if self.require_digit and not any(c.isdigit() for c in password):
            out.append("digit")
        if self.require_lowercase and not any(c.islower() for c in password):
            out.append("lowercase")
        if self.require_uppercase and not any(c.isupper() for c in password):
            out.append("uppercase")
        if self.require_non_alphanumeric and all(c.isalnum() for c in password):
            out.append("non_alphanumeric")
        return out

    def check(self, password: str) -> None:
        failures = self.failures(password)
        if failures:
            raise WeakPassword(failures)
