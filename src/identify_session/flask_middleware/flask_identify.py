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

"""
Flask Session Middleware

This module provides a Flask-compatible middleware that materializes the
signed session token of each request with a SessionBridge.
"""

import logging
from typing import Optional

from asgiref.sync import async_to_sync
from flask import Flask, request, g
from werkzeug.local import LocalProxy

from identify_session.shared.models import MergedSession
from identify_session.shared.session import SessionBridge


def get_current_session() -> Optional[MergedSession]:
    """Helper function to get the current session from Flask's global context."""
    return g.get("session")


current_session: "MergedSession" = LocalProxy(get_current_session)  # type: ignore

__all__ = ["FlaskSessionMiddleware", "current_session", "get_current_session"]

logger = logging.getLogger(__name__)


class FlaskSessionMiddleware:
    """
    Flask-compatible middleware to materialize the session of each request.
    """

    def __init__(self, app: Optional[Flask] = None, bridge: Optional[SessionBridge] = None, cookie_name: Optional[str] = None):
        self.bridge = bridge
        self.cookie_name = cookie_name
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask):
        if self.bridge is None:
            raise RuntimeError("FlaskSessionMiddleware requires a SessionBridge.")
        if self.cookie_name is None:
            self.cookie_name = self.bridge.config.cookie_name
        app.extensions["identify_session"] = self.bridge
        app.before_request(self._before_request_handler)
        app.after_request(self._after_request_handler)

    def _header_token(self) -> Optional[str]:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.lower().startswith("bearer "):
            return auth_header[7:].strip() or None
        return None

    def _before_request_handler(self):
        cookie_token = request.cookies.get(self.cookie_name)
        header_token = self._header_token()
        g.session = None
        g.clear_session_cookie = False
        if not cookie_token and not header_token:
            logger.debug("No session token in Flask request. Treating as public access.")
            return

        # Flask views are sync, the bridge is async.
        materialize = async_to_sync(self.bridge.materialize)
        session = None
        if cookie_token:
            session = materialize(cookie_token)
            g.clear_session_cookie = session is None
        if session is None and header_token:
            session = materialize(header_token)
        g.session = session

    def _after_request_handler(self, response):
        if g.get("clear_session_cookie"):
            response.delete_cookie(self.cookie_name)
        return response
