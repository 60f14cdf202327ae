from __future__ import annotations
import logging
from typing import Optional

from fastapi import FastAPI
from starlette.middleware.httpsredirect import HTTPSRedirectMiddleware

from components.authservice import (
    AccessEnforcerMiddleware, AccessTable, AuthService, AuthSettings, SystemClock,
    auth_access_rules, auth_router, set_auth_service,
)
from components.authservice.contracts import ClockPort
from components.corspolicy import install_cors, select_cors_policy
from components.identity import CredentialStore, InMemoryUserRepository, PasswordHasher, SqliteUserRepository

from .health import HealthRegistry
from .observability import RequestContextMiddleware
from .routers import health
from .settings import APP_NAME, GatewaySettings

log = logging.getLogger("apigateway.app")


def build_credential_store(settings: GatewaySettings, auth_settings: AuthSettings) -> CredentialStore:
    if settings.identity_db_path:
        repo = SqliteUserRepository(settings.identity_db_path)
    else:
        repo = InMemoryUserRepository()
    return CredentialStore(repo=repo, hasher=PasswordHasher(iterations=auth_settings.hash_iterations))


def create_app(
    settings: Optional[GatewaySettings] = None,
    auth_settings: Optional[AuthSettings] = None,
    *,
    store: Optional[CredentialStore] = None,
    clock: Optional[ClockPort] = None,
    access_table: Optional[AccessTable] = None,
) -> FastAPI:
    """
    Build the application. Raises SigningKeyError (a missing or short signing key)
    or ValueError (unknown environment) before anything is served.
    """
    settings = settings or GatewaySettings()
    auth_settings = auth_settings or AuthSettings()
    clock = clock or SystemClock()
    store = store or build_credential_store(settings, auth_settings)

    auth = AuthService.from_settings(auth_settings, store=store, clock=clock)
    cors = select_cors_policy(settings.app_environment, settings.cors_origins())

    table = access_table or AccessTable()
    for rule in auth_access_rules():
        table.add(rule)

    registry = HealthRegistry()
    registry.register("credential_store", store.ping)

    app = FastAPI(title=APP_NAME, version=settings.app_version)
    set_auth_service(app, auth)
    app.state.access_table = table
    app.state.cors_policy = cors
    app.state.health = registry

    # Last added runs first: CORS -> HTTPS redirect -> request context -> access enforcer.
    app.add_middleware(AccessEnforcerMiddleware, validator=auth.validator, table=table, now=clock.now_utc_ts)
    app.add_middleware(RequestContextMiddleware, hsts=settings.app_environment == "production")
    if settings.force_https:
        app.add_middleware(HTTPSRedirectMiddleware)
    install_cors(app, cors)

    # Routers
    app.include_router(auth_router)
    app.include_router(health.get_router(registry))

    log.info(
        "app_created environment=%s cors=%s kid=%s",
        settings.app_environment, cors.name, auth_settings.kid,
    )
    return app
