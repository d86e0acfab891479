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

import time
import logging
from typing import Mapping, Any, Optional

logger = logging.getLogger(__name__)


class IdentityException(Exception):
    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"[{status_code}] {detail}")


class InvalidToken(IdentityException):
    """Signature mismatch, malformed token or expired token."""

    def __init__(self, detail: str = "Invalid session token"):
        super().__init__(status_code=401, detail=detail)


class MalformedIdentity(IdentityException):
    """The identity assertion lacks a usable email."""

    def __init__(self, detail: str = "Malformed identity assertion"):
        super().__init__(status_code=400, detail=detail)


class StoreUnavailable(IdentityException):
    """A user store lookup or create call failed."""

    def __init__(self, detail: str = "User store unavailable"):
        super().__init__(status_code=503, detail=detail)


class DuplicateProfile(IdentityException):
    """The user store refused to create a second profile for an email."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(status_code=409, detail=f"A profile already exists for {email}")


def check_token_expiration(decoded_jwt: Mapping[str, Any], now: Optional[float] = None, threshold: int = 0):
    """
    Raise InvalidToken unless `now < exp - threshold`.
    """
    current_time = time.time() if now is None else now
    expire_time = decoded_jwt.get("exp")
    if expire_time is None:
        raise InvalidToken(detail="Token does not have an expiration claim")
    try:
        expire_time = int(expire_time)
    except (TypeError, ValueError) as e:
        raise InvalidToken(detail="Token expiration claim is not a timestamp") from e
    if not current_time < expire_time - threshold:
        raise InvalidToken(detail="Token expired or nearing expiration.")
