from __future__ import annotations

import logging
from typing import Iterable

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from .contracts import ANY, CorsPolicy, wildcard_origin_regex

log = logging.getLogger("corspolicy")

ENVIRONMENTS = ("development", "production")


def select_cors_policy(environment: str, allowed_origins: Iterable[str] = ()) -> CorsPolicy:
    """
    development: any origin, method and header; never with credentials.
    production: GET only, allow-listed origins (wildcard subdomains allowed), any header.
    """
    env = (environment or "").strip().lower()
    if env == "development":
        policy = CorsPolicy(name="development", allow_origins=(ANY,), allow_methods=(ANY,), allow_headers=(ANY,))
    elif env == "production":
        origins = [o.strip().rstrip("/") for o in allowed_origins if o and o.strip()]
        exact = tuple(o for o in origins if "://*." not in o)
        policy = CorsPolicy(
            name="production",
            allow_origins=exact,
            allow_origin_regex=wildcard_origin_regex(origins),
            allow_methods=("GET",),
            allow_headers=(ANY,),
        )
    else:
        raise ValueError(f"Unknown environment {environment!r}; expected one of {ENVIRONMENTS}")
    log.info(
        "cors_policy_selected name=%s origins=%s regex=%s methods=%s",
        policy.name, list(policy.allow_origins), policy.allow_origin_regex, list(policy.allow_methods),
    )
    return policy


def install_cors(app: FastAPI, policy: CorsPolicy) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(policy.allow_origins),
        allow_origin_regex=policy.allow_origin_regex,
        allow_methods=list(policy.allow_methods),
        allow_headers=list(policy.allow_headers),
        allow_credentials=policy.allow_credentials,
        max_age=policy.max_age,
    )
