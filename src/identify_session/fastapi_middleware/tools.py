#    Copyright 2025 FAO
#
#    Licensed under the Apache License, Version 2.0 (the "License");
#    you may not use this file except in compliance with the License.
#    You may obtain a copy of the License at
#
#        http://www.apache.org/licenses/LICENSE-2.0
#
#    Unless required by applicable law or agreed to in writing, software
#    distributed under the License is distributed on an "AS IS" BASIS,
#    WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#    See the License for the specific language governing permissions and
#    limitations under the License.
#
#    Author: Carlo Cancellieri (ccancellieri@gmail.com)
#    Company: FAO, Viale delle Terme di Caracalla, 00100 Rome, Italy
#    Contact: copyright@fao.org - http://fao.org/contact-us/terms/en/
# File: fastapi_middleware/tools.py

"""
Developer Tools and Helpers for the session middleware.

This module provides FastAPI dependencies to access the materialized
session within your application endpoints, and a router exposing the
sign-in / sign-out endpoints.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Request, Response, HTTPException, Depends
from pydantic import BaseModel

from identify_session.shared.jwt_utils import IdentityException
from identify_session.shared.models import MergedSession
from identify_session.shared.providers import verify_google_id_token
from identify_session.shared.session import SessionBridge

logger = logging.getLogger(__name__)


def get_current_session(request: Request) -> Optional[MergedSession]:
    """
    FastAPI dependency to get the current session.

    Returns Optional[MergedSession], so it's suitable for endpoints
    that are public but have optional authenticated features.

    Usage:
        @app.get("/projects")
        async def list_projects(
            session: Optional[MergedSession] = Depends(get_current_session)
        ):
            if session:
                return {"message": f"Hello, {session.email}"}
            return {"message": "Hello, guest"}
    """
    return getattr(request.state, "session", None)


def require_auth(
    session: Optional[MergedSession] = Depends(get_current_session)
) -> MergedSession:
    """
    FastAPI dependency to require a signed-in user.

    If no session is found, it raises a 401 HTTPException.
    """
    if not session:
        logger.warning("require_auth: No session found, raising 401.")
        raise HTTPException(status_code=401, detail="Not authenticated")
    return session


class GoogleCredential(BaseModel):
    credential: str


def build_auth_router(
    bridge: SessionBridge,
    audience: str,
    cookie_name: Optional[str] = None,
    secure_cookie: bool = True,
    prefix: str = "/auth",
) -> APIRouter:
    """
    Build the sign-in router.

    POST {prefix}/google   verify a Google ID token, run the sign-in gate, set the session cookie
    GET  {prefix}/session  return the current merged session (or null)
    POST {prefix}/signout  delete the session cookie
    """
    cookie = cookie_name or bridge.config.cookie_name
    router = APIRouter(prefix=prefix)

    @router.post("/google")
    async def google_sign_in(body: GoogleCredential, response: Response):
        try:
            identity = verify_google_id_token(body.credential, audience)
        except IdentityException as e:
            raise HTTPException(status_code=e.status_code, detail=e.detail) from e

        token = await bridge.sign_in(identity)
        if token is None:
            raise HTTPException(status_code=403, detail="Sign-in denied")

        response.set_cookie(
            cookie,
            token,
            max_age=bridge.config.ttl_seconds,
            httponly=True,
            secure=secure_cookie,
            samesite="lax",
        )
        return {"email": identity.email}

    @router.get("/session")
    async def current_session(session: Optional[MergedSession] = Depends(get_current_session)):
        return session.as_dict() if session else None

    @router.post("/signout")
    async def sign_out(response: Response):
        response.delete_cookie(cookie)
        return {"message": "Signed out"}

    return router
