"""
AgentAuth client-side request signing for `requests`.

    session = requests.Session()
    session.auth = AgentAuth(token)
    session.post("https://example.com/mcp", json=message)

Each request gets its own freshly timestamped and signed headers, so a
long-lived session never goes stale.
"""

import logging
from typing import Any, Dict, Iterable, Optional

import requests

from . import config
from .identity import derive_address
from .protocol import create_auth_headers

logger = logging.getLogger(__name__)


class AgentAuth(requests.auth.AuthBase):
    """
    requests auth hook that signs outgoing requests with an AgentAuth token.

    Args:
        token: Private key token; defaults to AGENTAUTH_TOKEN
        methods: Only sign requests with these HTTP methods; None signs all
        payload: Extra fields merged into every signed payload
    """

    def __init__(
        self,
        token: Optional[str] = None,
        methods: Optional[Iterable[str]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ):
        token = token or config.get_token()
        if not token:
            raise ValueError(f"No AgentAuth token given and {config.TOKEN_ENV_VAR} is not set")

        # Fail early on a bad token rather than on the first request.
        self.address = derive_address(token)
        self._token = token
        self.methods = {m.upper() for m in methods} if methods is not None else None
        self.payload = dict(payload or {})

    def __call__(self, r: requests.PreparedRequest) -> requests.PreparedRequest:
        if self.methods is not None and (r.method or "").upper() not in self.methods:
            return r

        r.headers.update(create_auth_headers(self._token, self.payload))
        logger.debug("Signed %s %s as %s", r.method, r.url, self.address)
        return r

    def __repr__(self) -> str:
        return f"AgentAuth(address={self.address!r})"
