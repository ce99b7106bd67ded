import logging

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from typing import Optional

from agentauth import create_auth_headers, generate_identity
from agentauth.middleware import AgentAuthVerifier, AuthenticatedAgent, UNAUTHORIZED_DETAIL

NOW = 1_700_000_000_000

require_agent = AgentAuthVerifier(now=lambda: NOW)
optional_agent = AgentAuthVerifier(required=False, now=lambda: NOW)

app = FastAPI()


@app.get("/whoami")
def whoami(agent: AuthenticatedAgent = Depends(require_agent)):
    return agent.model_dump()


@app.post("/tools/auth-status")
def auth_status(agent: Optional[AuthenticatedAgent] = Depends(optional_agent)):
    if agent is None:
        return {"authenticated": False}
    return {"authenticated": True, "agentauth_id": agent.agentauth_id}


client = TestClient(app)


@pytest.fixture(scope="module")
def identity():
    return generate_identity()


def signed(identity, now=NOW):
    return create_auth_headers(identity.agentauth_token, now=lambda: now)


# Valid headers reach the route with the caller's identity
def test_authenticated_request(identity):
    r = client.get("/whoami", headers=signed(identity))
    assert r.status_code == 200
    assert r.json() == {
        "agentauth_address": identity.agentauth_address,
        "agentauth_id": identity.agentauth_id,
    }


# No headers -> 401 with the fixed detail
def test_missing_headers_rejected():
    r = client.get("/whoami")
    assert r.status_code == 401
    assert r.json() == {"detail": UNAUTHORIZED_DETAIL}
    assert r.headers["www-authenticate"] == "AgentAuth"


# Expired and forged requests get the identical response body
def test_failures_indistinguishable(identity):
    expired = client.get("/whoami", headers=signed(identity, now=NOW - 120_000))
    forged_headers = signed(identity)
    forged_headers["x-agentauth-address"] = "0x1234567890123456789012345678901234567890"
    forged = client.get("/whoami", headers=forged_headers)
    garbage = client.get("/whoami", headers={
        "x-agentauth-address": "x",
        "x-agentauth-signature": "y",
        "x-agentauth-payload": "z",
    })
    assert expired.status_code == forged.status_code == garbage.status_code == 401
    assert expired.json() == forged.json() == garbage.json()


# Optional dependency lets anonymous callers through
def test_optional_anonymous():
    r = client.post("/tools/auth-status")
    assert r.status_code == 200
    assert r.json() == {"authenticated": False}


def test_optional_authenticated(identity):
    r = client.post("/tools/auth-status", headers=signed(identity))
    assert r.json() == {"authenticated": True, "agentauth_id": identity.agentauth_id}


def test_custom_freshness(identity):
    lenient = AgentAuthVerifier(freshness=300_000, now=lambda: NOW)
    local = FastAPI()

    @local.get("/")
    def root(agent: AuthenticatedAgent = Depends(lenient)):
        return {"agentauth_id": agent.agentauth_id}

    r = TestClient(local).get("/", headers=signed(identity, now=NOW - 120_000))
    assert r.status_code == 200
    assert r.json()["agentauth_id"] == identity.agentauth_id


# Audit records carry the caller's x-request-id, or a generated one
def test_request_id_in_audit_records(identity, caplog):
    caplog.set_level(logging.INFO, logger="agentauth.audit")
    headers = signed(identity)
    headers["x-request-id"] = "trace-42"

    r = client.get("/whoami", headers=headers)
    assert r.status_code == 200
    audit = [rec for rec in caplog.records if rec.name == "agentauth.audit"]
    assert [rec.extra_fields["request_id"] for rec in audit] == ["trace-42"]

    caplog.clear()
    client.get("/whoami")
    generated = [rec.extra_fields["request_id"] for rec in caplog.records if rec.name == "agentauth.audit"]
    assert len(generated) == 1
    assert len(generated[0]) == 36
