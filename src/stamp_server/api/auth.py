"""Request authentication for operator and admin endpoints.

Credentials are read the way the counter frontend sends them:

- API key: ``x-api-key`` header or ``apiKey`` query parameter.  The optional
  ``x-operator`` header names the person acting with the key.
- Operator token: ``Authorization: Bearer <token>`` or ``x-token`` header.
"""

from collections.abc import Callable

from fastapi import HTTPException, Request

from stamp_server.services import StampServices


def _api_key_from(request: Request) -> str | None:
    return request.headers.get("x-api-key") or request.query_params.get("apiKey")


def _token_from(request: Request) -> str | None:
    auth = request.headers.get("authorization") or ""
    if auth.lower().startswith("bearer "):
        token = auth[7:].strip()
        if token:
            return token
    return request.headers.get("x-token")


def operator_dependency(services: StampServices) -> Callable[[Request], str]:
    """Build a dependency accepting an API key or a live operator token.

    The dependency returns the operator name used in stamps and logs.
    """

    def require_operator(request: Request) -> str:
        if services.operators.is_api_key(_api_key_from(request)):
            return request.headers.get("x-operator") or "api"
        operator = services.operators.resolve_token(_token_from(request))
        if not operator:
            raise HTTPException(status_code=401, detail="Invalid or missing API key/token")
        return operator

    return require_operator


def admin_dependency(services: StampServices) -> Callable[[Request], str]:
    """Build a dependency accepting only API keys."""

    def require_admin(request: Request) -> str:
        if not services.operators.has_api_keys():
            raise HTTPException(status_code=500, detail="Server misconfigured: no API keys set.")
        if not services.operators.is_api_key(_api_key_from(request)):
            raise HTTPException(status_code=401, detail="Invalid or missing API key")
        return request.headers.get("x-operator") or "admin"

    return require_admin
