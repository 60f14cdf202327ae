from __future__ import annotations

import re
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

Environment = Literal["development", "production"]

ANY = "*"


def wildcard_origin_regex(origins: List[str]) -> Optional[str]:
    """
    Regex for origins written as `scheme://*.domain[:port]`.
    `https://*.example.com` matches `https://a.example.com` and `https://a.b.example.com`
    but not `https://example.com` itself.
    """
    parts = []
    for origin in origins:
        if "://*." not in origin:
            continue
        scheme, rest = origin.split("://*.", 1)
        parts.append(rf"{re.escape(scheme)}://[A-Za-z0-9-]+(\.[A-Za-z0-9-]+)*\.{re.escape(rest)}")
    if not parts:
        return None
    return "^(?:" + "|".join(parts) + ")$"


class CorsPolicy(BaseModel):
    """Immutable cross-origin policy resolved once at startup."""
    model_config = ConfigDict(frozen=True)

    name: Environment
    allow_origins: Tuple[str, ...] = Field(default_factory=tuple)
    allow_origin_regex: Optional[str] = None
    allow_methods: Tuple[str, ...] = Field(default_factory=tuple)
    allow_headers: Tuple[str, ...] = (ANY,)
    allow_credentials: bool = False
    max_age: int = 600

    def origin_allowed(self, origin: str) -> bool:
        if ANY in self.allow_origins or origin in self.allow_origins:
            return True
        return bool(self.allow_origin_regex and re.fullmatch(self.allow_origin_regex, origin))

    def method_allowed(self, method: str) -> bool:
        return ANY in self.allow_methods or method.upper() in self.allow_methods

    def allows(self, origin: str, method: str) -> bool:
        return self.origin_allowed(origin) and self.method_allowed(method)
