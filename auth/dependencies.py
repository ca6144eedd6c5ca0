"""
auth/dependencies.py -- FastAPI Depends() helper wrapping the Auth Gate.

require_session() is the ParseIdentity step of the gate: it reads the claimed
user_name from the JSON request body, then hands off to AuthGate.authorize().
On success the route handler receives the original body unchanged (FastAPI
caches the body bytes on the Request, so reading it here does not consume
it), and the response carries the session's Authorization header.

On rejection AuthGate raises Unauthenticated; api/main.py turns that into 401.

Layer rule: no imports from api/ or vault/.
  auth/dependencies.py may import from fastapi (for Request/Response/
  HTTPException) because this module is part of the FastAPI dependency
  injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request, Response

from auth.gate import AuthGate
from auth.models import GateDecision


async def require_session(request: Request, response: Response) -> GateDecision:
    """Require a live session for the body's user_name.

    Use as a router-level dependency:
        router = APIRouter(dependencies=[Depends(require_session)])
    """
    try:
        body = await request.json()
    except ValueError as exc:
        raise HTTPException(
            status_code=400,
            detail={"code": "bad_request", "message": "Request body must be a JSON object."},
        ) from exc
    if not isinstance(body, dict):
        raise HTTPException(
            status_code=400,
            detail={"code": "bad_request", "message": "Request body must be a JSON object."},
        )
    claimed_user = body.get("user_name", "")
    if not isinstance(claimed_user, str):
        raise HTTPException(
            status_code=400,
            detail={"code": "bad_request", "message": "user_name must be a string."},
        )

    gate: AuthGate = request.app.state.gate
    decision = gate.authorize(claimed_user)
    response.headers["Authorization"] = decision.bearer_value
    return decision
