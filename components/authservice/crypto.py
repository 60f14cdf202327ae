from __future__ import annotations
import base64, binascii, json, hmac, hashlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple
from .config import MIN_SECRET_BYTES
from .contracts import InvalidReason, TokenSignerPort
from .errors import InvalidToken, SigningKeyError

ALG = "HS256"

def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("utf-8")

def _unb64url(s: str) -> bytes:
    pad = '=' * (-len(s) % 4)
    return base64.urlsafe_b64decode(s + pad)

def _json_segment(s: str) -> Dict[str, Any]:
    try:
        value = json.loads(_unb64url(s).decode("utf-8"))
    except (binascii.Error, ValueError, UnicodeDecodeError, RecursionError) as ex:
        raise InvalidToken(InvalidReason.MALFORMED, "undecodable segment") from ex
    if not isinstance(value, dict):
        raise InvalidToken(InvalidReason.MALFORMED, "segment is not an object")
    return value


@dataclass(frozen=True)
class SigningKey:
    """Symmetric key with an optional validity window (epoch seconds, [not_before, not_after))."""
    kid: str
    secret: bytes = field(repr=False)
    not_before: Optional[int] = None
    not_after: Optional[int] = None

    def active_at(self, now: int) -> bool:
        if self.not_before is not None and now < self.not_before:
            return False
        if self.not_after is not None and now >= self.not_after:
            return False
        return True


class HS256TokenSigner(TokenSignerPort):
    """
    HS256 compact JWS signer over an immutable key ring.
    Keys are ordered newest first; signing uses the newest key active at `now`
    and its kid goes in the header. Verification looks the kid up, or tries the
    active keys newest-first when the header carries none.
    """
    def __init__(self, keys: Sequence[SigningKey], *, min_secret_bytes: int = MIN_SECRET_BYTES):
        if not keys:
            raise SigningKeyError("HS256TokenSigner requires at least one signing key")
        kids = [k.kid for k in keys]
        if len(set(kids)) != len(kids):
            raise SigningKeyError("Duplicate key ids in key ring")
        for k in keys:
            if not k.secret:
                raise SigningKeyError(f"Signing key '{k.kid}' is empty")
            if len(k.secret) < min_secret_bytes:
                raise SigningKeyError(
                    f"Signing key '{k.kid}' is {len(k.secret)} bytes; at least {min_secret_bytes} required"
                )
        self._keys: Tuple[SigningKey, ...] = tuple(keys)
        self._by_kid = {k.kid: k for k in self._keys}

    @classmethod
    def from_secret(cls, secret: bytes, kid: str = "primary", *, min_secret_bytes: int = MIN_SECRET_BYTES) -> "HS256TokenSigner":
        return cls([SigningKey(kid=kid, secret=secret)], min_secret_bytes=min_secret_bytes)

    def _signing_key(self, now: int) -> SigningKey:
        for k in self._keys:
            if k.active_at(now):
                return k
        raise SigningKeyError("No signing key is active at the current time")

    @staticmethod
    def _mac(key: SigningKey, signing_input: bytes) -> str:
        return _b64url(hmac.new(key.secret, signing_input, hashlib.sha256).digest())

    def sign(self, claims: Dict[str, Any], *, now: int) -> str:
        key = self._signing_key(now)
        headers = {"alg": ALG, "typ": "JWT", "kid": key.kid}
        header_b64 = _b64url(json.dumps(headers, separators=(",",":")).encode("utf-8"))
        payload_b64 = _b64url(json.dumps(claims, separators=(",",":")).encode("utf-8"))
        signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
        return f"{header_b64}.{payload_b64}.{self._mac(key, signing_input)}"

    def verify(self, token: str, *, now: int) -> Dict[str, Any]:
        """Return the payload if structure and signature check out; raise InvalidToken otherwise."""
        if not isinstance(token, str):
            raise InvalidToken(InvalidReason.MALFORMED, "token is not a string")
        parts = token.split(".")
        if len(parts) != 3 or not all(parts):
            raise InvalidToken(InvalidReason.MALFORMED, "expected three segments")
        header_b64, payload_b64, sig_b64 = parts
        header = _json_segment(header_b64)
        payload = _json_segment(payload_b64)
        if header.get("alg") != ALG:
            raise InvalidToken(InvalidReason.MALFORMED, f"unsupported alg {header.get('alg')!r}")

        kid = header.get("kid")
        if kid is not None and not isinstance(kid, str):
            raise InvalidToken(InvalidReason.MALFORMED, "kid is not a string")
        if kid is not None:
            key = self._by_kid.get(kid)
            candidates = [key] if key is not None and key.active_at(now) else []
        else:
            candidates = [k for k in self._keys if k.active_at(now)]

        signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
        # Compare the encoded segment so that any change to it is detected,
        # including edits to the unused trailing bits of the last character.
        for key in candidates:
            if hmac.compare_digest(self._mac(key, signing_input).encode("utf-8"), sig_b64.encode("utf-8")):
                return payload
        raise InvalidToken(InvalidReason.BAD_SIGNATURE, "signature mismatch")

    def active_kid(self, *, now: int) -> Optional[str]:
        for k in self._keys:
            if k.active_at(now):
                return k.kid
        return None

    def list_kids(self) -> List[str]:
        return [k.kid for k in self._keys]
