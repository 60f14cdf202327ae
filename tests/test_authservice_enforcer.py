import pytest
from fastapi import Depends, FastAPI, Request
from httpx import ASGITransport, AsyncClient
from pydantic import ValidationError

from components.authservice import (
    AccessEnforcerMiddleware, AccessRule, AccessTable, HS256TokenSigner, TokenIssuer, TokenValidator, require_roles,
)
from components.authservice.enforcer import extract_bearer
from components.identity import CredentialStore, InMemoryUserRepository, PasswordHasher

SECRET = b"s" * 32
T0 = 1_700_000_000


def make_tokens():
    signer = HS256TokenSigner.from_secret(SECRET)
    issuer = TokenIssuer(signer=signer, issuer="iss", audience="aud", lifetime_seconds=60)
    validator = TokenValidator(signer=signer, issuer="iss", audience="aud")
    store = CredentialStore(repo=InMemoryUserRepository(), hasher=PasswordHasher(iterations=1000))
    admin = store.create_user("root", "Secret123!", ["admin"])
    viewer = store.create_user("viewer", "Secret123!", ["reader"])
    return validator, issuer.issue(admin, T0).access_token, issuer.issue(viewer, T0).access_token


def make_app(validator, now):
    table = AccessTable()
    table.declare("orders.write", r"^/orders$", methods=["POST"], roles=["admin", "ops"])
    table.declare("orders.read", r"^/orders$", methods=["GET"])

    app = FastAPI()
    app.add_middleware(AccessEnforcerMiddleware, validator=validator, table=table, now=now)

    @app.get("/orders")
    async def list_orders(request: Request):
        return {"sub": request.state.principal.subject}

    @app.post("/orders")
    async def create_order():
        return {"created": True}

    @app.get("/open")
    async def open_route():
        return {"ok": True}

    @app.get("/reports")
    async def reports(principal = Depends(require_roles("admin"))):
        return {"ok": True}

    return app


def test_extract_bearer():
    assert extract_bearer("Bearer abc") == "abc"
    assert extract_bearer("bearer   abc  ") == "abc"
    assert extract_bearer("Basic abc") is None
    assert extract_bearer("Bearer") is None
    assert extract_bearer(None) is None


def test_rule_matching_and_table_lookup():
    table = AccessTable([AccessRule(name="a", path_pattern=r"^/a$", methods=["get"])])
    assert table.lookup("GET", "/a").name == "a"
    assert table.lookup("POST", "/a") is None
    assert table.lookup("GET", "/b") is None
    with pytest.raises(ValueError):
        table.declare("a", r"^/other$")
    with pytest.raises(ValidationError):
        AccessRule(name="bad", path_pattern="(")


@pytest.mark.anyio
async def test_authenticate_then_authorize():
    validator, admin, viewer = make_tokens()
    t = {"now": T0}
    app = make_app(validator, lambda: t["now"])

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        # uncovered route is public
        r = await ac.get("/open")
        assert r.status_code == 200

        # authenticated read, no roles required
        r = await ac.get("/orders", headers={"Authorization": f"Bearer {viewer}"})
        assert r.status_code == 200
        assert r.json()["sub"]

        # role requirement: any one of admin/ops
        r = await ac.post("/orders", headers={"Authorization": f"Bearer {viewer}"})
        assert r.status_code == 403
        r = await ac.post("/orders", headers={"Authorization": f"Bearer {admin}"})
        assert r.status_code == 200

        # authentication runs before authorization: no token is 401, never 403
        r = await ac.post("/orders")
        assert r.status_code == 401

        # uncovered route using the dependency fails closed
        r = await ac.get("/reports", headers={"Authorization": f"Bearer {admin}"})
        assert r.status_code == 401

        # expiry
        t["now"] = T0 + 60
        r = await ac.get("/orders", headers={"Authorization": f"Bearer {admin}"})
        assert r.status_code == 401
        assert r.json()["error"]["code"] == "UNAUTHENTICATED"


@pytest.fixture
def anyio_backend():
    return "asyncio"
