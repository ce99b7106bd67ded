"""
FastAPI integration for AgentAuth.

    verifier = AgentAuthVerifier()

    @app.get("/whoami")
    def whoami(agent: AuthenticatedAgent = Depends(verifier)):
        return {"agentauth_id": agent.agentauth_id}

With required=False the dependency yields None for callers that fail
verification instead of rejecting them.
"""

from typing import Callable, Optional

from fastapi import HTTPException, Request
from pydantic import BaseModel

from . import config
from .logging_config import set_request_id
from .protocol import ADDRESS_HEADER, verify

UNAUTHORIZED_DETAIL = "AgentAuth verification failed"
REQUEST_ID_HEADER = "x-request-id"


class AuthenticatedAgent(BaseModel):
    """The verified caller of a request."""
    agentauth_address: str
    agentauth_id: str


class AgentAuthVerifier:
    """Callable FastAPI dependency that verifies AgentAuth headers."""

    def __init__(
        self,
        freshness: Optional[int] = None,
        required: bool = True,
        now: Optional[Callable[[], float]] = None,
    ):
        self.freshness = config.DEFAULT_FRESHNESS_MS if freshness is None else freshness
        self.required = required
        self.now = now

    def __call__(self, request: Request) -> Optional[AuthenticatedAgent]:
        # Audit records for this request carry the caller's ID, or a fresh one.
        set_request_id(request.headers.get(REQUEST_ID_HEADER))
        result = verify(request.headers, freshness=self.freshness, now=self.now)

        if not result.valid:
            if self.required:
                raise HTTPException(
                    status_code=401,
                    detail=UNAUTHORIZED_DETAIL,
                    headers={"WWW-Authenticate": "AgentAuth"},
                )
            return None

        request.state.agentauth_id = result.agentauth_id
        return AuthenticatedAgent(
            agentauth_address=request.headers[ADDRESS_HEADER].lower(),
            agentauth_id=result.agentauth_id,
        )
