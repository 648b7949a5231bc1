import json
from typing import Any

from fastapi import Depends, Request

from payroll_admin.core.context import RequestContext
from payroll_admin.deps.auth import require_auth
from payroll_admin.schemas.validation import MalformedBody


async def read_json_body(request: Request, ctx: RequestContext = Depends(require_auth)) -> Any:
    """Request body as JSON, read only once the caller is authenticated.

    A body that does not decode is handed on as ``MalformedBody`` so the
    mutation runner rejects and audits it like any other invalid input.
    """
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except ValueError as exc:
        return MalformedBody(str(exc))
