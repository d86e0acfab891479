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

import logging
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from identify_session.shared.models import MergedSession
from identify_session.shared.session import SessionBridge

logger = logging.getLogger(__name__)


class SessionIdentifyMiddleware(BaseHTTPMiddleware):
    """
    Middleware that materializes the signed session token of each request into
    `request.state.session` in a FastAPI application.
    """

    def __init__(
        self,
        app,
        bridge: SessionBridge,
        cookie_name: Optional[str] = None,
        header_key: str = "Authorization",
        scheme: str = "Bearer",
    ):
        super().__init__(app)
        self.bridge = bridge
        self.cookie_name = cookie_name or bridge.config.cookie_name
        self.header_key = header_key
        self.scheme = scheme.lower().strip()
        self.scheme_len = len(self.scheme) + 1 if self.scheme else 0

    def _header_token(self, request: Request) -> Optional[str]:
        auth_header = request.headers.get(self.header_key)
        if not auth_header:
            return None
        if self.scheme:
            if not auth_header.lower().startswith(self.scheme + " "):
                return None
            return auth_header[self.scheme_len:].strip() or None
        return auth_header

    async def dispatch(self, request: Request, call_next):
        cookie_token = request.cookies.get(self.cookie_name)
        header_token = self._header_token(request)
        if not cookie_token and not header_token:
            logger.debug("No session token. Treating as public access.")
            request.state.session = None
            return await call_next(request)

        session: Optional[MergedSession] = None
        clear_cookie = False
        if cookie_token:
            session = await self.bridge.materialize(cookie_token)
            clear_cookie = session is None
        # A stale cookie must not hide a valid bearer token.
        if session is None and header_token:
            session = await self.bridge.materialize(header_token)
        request.state.session = session
        if session is not None:
            logger.debug(f"Session materialized for {session.email}.")

        response = await call_next(request)
        if clear_cookie:
            response.delete_cookie(self.cookie_name)
        return response
