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
from typing import Callable, Mapping, Any, Union

from jose import jwt, exceptions
from pydantic import ValidationError

from identify_session.shared.config import SessionConfig
from identify_session.shared.jwt_utils import InvalidToken, check_token_expiration
from identify_session.shared.models import SessionClaims

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class TokenCodec:
    """
    Encodes session claims into a signed, time-bounded token and verifies it back.

    The codec owns the `iss` and `exp` claims: whatever the caller passes for
    them is replaced on encode, so an upstream session cannot forge or extend
    its own expiry.
    """

    def __init__(self, config: SessionConfig, clock: Clock = time.time):
        self.secret = config.secret
        self.issuer = config.issuer
        self.algorithm = config.algorithm
        self.ttl = config.ttl_seconds
        self._clock = clock

    def encode(self, claims: Union[SessionClaims, Mapping[str, Any]]) -> str:
        if isinstance(claims, SessionClaims):
            payload = claims.session_fields()
        else:
            payload = {k: v for k, v in claims.items() if k not in ("iss", "exp")}
        payload["iss"] = self.issuer
        payload["exp"] = int(self._clock()) + self.ttl
        # Signing errors (bad key, unserializable values) are fatal for the caller.
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode(self, token: str) -> SessionClaims:
        if not token or not isinstance(token, str):
            raise InvalidToken(detail="Empty session token")
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                # Expiry is checked below against the codec clock.
                options={"verify_exp": False, "verify_aud": False},
            )
        except exceptions.JWTError as e:
            logger.info(f"Session token rejected: {e}")
            raise InvalidToken(detail="Invalid session token") from e
        check_token_expiration(payload, now=self._clock())
        try:
            return SessionClaims(**payload)
        except ValidationError as e:
            logger.info(f"Session token rejected: {e.errors()[0]['msg']}")
            raise InvalidToken(detail="Malformed session claims") from e
