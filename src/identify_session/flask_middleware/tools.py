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
# File: flask_middleware/tools.py

"""
Developer Tools and Helpers for the Flask session middleware.
"""

import logging
from functools import wraps
from typing import Optional

from flask import g, abort

from identify_session.shared.session import SessionBridge

logger = logging.getLogger(__name__)


def require_auth(f):
    """
    Flask decorator to require a signed-in user.

    If no session is found on `g.session`, it aborts with a 401.

    Usage:
        @app.route("/secure-data")
        @require_auth
        def get_secure_data():
            return jsonify(message=f"Secure data for {g.session.email}")
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not g.get("session"):
            logger.warning("require_auth: No session found, aborting 401.")
            abort(401, description="Not authenticated")
        return f(*args, **kwargs)
    return decorated_function


def set_session_cookie(response, bridge: SessionBridge, token: str, cookie_name: Optional[str] = None, secure: bool = True):
    """Attach an issued session token to a Flask response."""
    response.set_cookie(
        cookie_name or bridge.config.cookie_name,
        token,
        max_age=bridge.config.ttl_seconds,
        httponly=True,
        secure=secure,
        samesite="Lax",
    )
    return response
