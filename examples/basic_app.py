"""
Basic example demonstrating permissio usage in a FastAPI application.

Run with:
    PERMISSIO_TOKEN=permis_key_... uvicorn examples.basic_app:app --reload

Then visit:
    - http://localhost:18000/docs - OpenAPI documentation
"""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated

import uvicorn
from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from permissio import (
    AccessDeniedError,
    CheckRequest,
    Permissio,
    PermissioAuthz,
    PermissioUser,
    PermissionsQuery,
    require_permission,
)


# =============================================================================
# User Model
# =============================================================================
class User:
    def __init__(self, user_key: str):
        self.user_key = user_key


# Fake session store (token -> user key registered in Permissio)
USERS = {
    "admin-token": User(user_key="admin@example.com"),
    "user-token": User(user_key="user@example.com"),
}

# Fake report database (report_id -> report)
REPORTS = {
    "1": {"title": "Q1 Sales Report"},
    "2": {"title": "Q2 Sales Report"},
}


# =============================================================================
# Authentication Dependency
# =============================================================================
async def get_current_user(x_token: Annotated[str, Header()]) -> User:
    """Simulate authentication via X-Token header."""
    user = USERS.get(x_token)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid token")
    return user


# =============================================================================
# Application Setup
# =============================================================================
permissio = Permissio(os.environ.get("PERMISSIO_TOKEN", "permis_key_example"), throw_on_error=False)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    async with permissio:
        yield


app = FastAPI(
    title="Permissio Example",
    description="Example app protecting endpoints with permissio checks",
    lifespan=lifespan,
)

PermissioAuthz(
    app,
    permissio,
    get_user_key=lambda user: user.user_key,
    user_dependency=get_current_user,
)


@app.exception_handler(AccessDeniedError)
async def access_denied_handler(request: Request, exc: AccessDeniedError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.decision.reason})


# =============================================================================
# Routes
# =============================================================================
@app.get("/reports", dependencies=[Depends(require_permission("read", "report"))])
async def list_reports():
    """List all reports. Requires report:read."""
    return [{"id": k, **v} for k, v in REPORTS.items()]


@app.put(
    "/reports/{report_id}",
    dependencies=[Depends(require_permission("update", "report", resource_key_param="report_id"))],
)
async def update_report(report_id: str, title: str):
    """Update a report. Requires report:update on this report."""
    report = REPORTS.get(report_id)
    if not report:
        raise HTTPException(status_code=404, detail="Report not found")
    report["title"] = title
    return {"id": report_id, **report}


@app.delete("/reports/{report_id}")
async def delete_report(report_id: str, user: Annotated[User, Depends(get_current_user)]):
    """Delete a report, checking the permission by hand."""
    await permissio.check_and_throw(
        CheckRequest(user=user.user_key, action="delete", resource=f"report:{report_id}")
    )
    REPORTS.pop(report_id, None)
    return {"deleted": report_id}


@app.get("/me/permissions", dependencies=[Depends(require_permission("read", "report"))])
async def my_permissions(user: Annotated[User, Depends(PermissioUser)]):
    """List the caller's roles and every permission they grant."""
    return await permissio.get_permissions(PermissionsQuery(user=user.user_key))


# =============================================================================
# Health Check (no auth required)
# =============================================================================
@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    uvicorn.run(app, port=18_000)
