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
from typing import Optional, Mapping, Any

from identify_session.shared.callbacks import SessionCallbacks, IdentityInput
from identify_session.shared.codec import TokenCodec, Clock
from identify_session.shared.config import SessionConfig
from identify_session.shared.jwt_utils import InvalidToken, MalformedIdentity
from identify_session.shared.models import ExternalIdentity, MergedSession, normalize_email
from identify_session.shared.reconciler import IdentityReconciler
from identify_session.shared.store import UserStore, build_user_store

logger = logging.getLogger(__name__)


class SessionBridge:
    """
    Wires the token codec and the session callbacks together for a web layer.

    Usage:
        bridge = SessionBridge.from_config(SessionConfig.from_env())
        token = await bridge.sign_in({"email": "a@x.com", "name": "A"})
        session = await bridge.materialize(token)
    """

    def __init__(self, config: SessionConfig, store: UserStore, clock: Clock = time.time):
        self.config = config
        self.codec = TokenCodec(config, clock=clock)
        self.reconciler = IdentityReconciler(store)
        self.callbacks = SessionCallbacks(self.reconciler)

    @classmethod
    def from_config(cls, config: SessionConfig, clock: Clock = time.time) -> "SessionBridge":
        return cls(config, build_user_store(config), clock=clock)

    async def sign_in(
        self,
        identity: IdentityInput,
        provider_session: Optional[Mapping[str, Any]] = None,
    ) -> Optional[str]:
        """
        Run the sign-in gate and, when admitted, issue a session token.

        Returns None when the sign-in is denied; no token is issued then.
        """
        if not isinstance(identity, ExternalIdentity):
            try:
                identity = ExternalIdentity.from_claims(identity)
            except MalformedIdentity as e:
                logger.warning(f"Sign-in denied: {e.detail}")
                return None
        if provider_session is not None and not self._session_matches(provider_session, identity):
            logger.warning(f"Sign-in denied: provider session does not belong to {identity.email}")
            return None
        if not await self.callbacks.on_sign_in(identity):
            return None
        if provider_session is None:
            provider_session = identity.to_provider_session()
        return self.codec.encode(provider_session)

    @staticmethod
    def _session_matches(provider_session: Mapping[str, Any], identity: ExternalIdentity) -> bool:
        user = provider_session.get("user")
        email = user.get("email") if isinstance(user, Mapping) else None
        return isinstance(email, str) and normalize_email(email) == identity.email

    async def materialize(self, token: str) -> Optional[MergedSession]:
        """
        Decode a session token and merge it with the current internal profile.

        An invalid or expired token means "no session" and returns None.
        """
        try:
            claims = self.codec.decode(token)
        except InvalidToken as e:
            logger.info(f"Treating request as unauthenticated: {e.detail}")
            return None
        return await self.callbacks.on_session_materialize(claims.session_fields())

    async def get_current_session(self, token: Optional[str]) -> Optional[MergedSession]:
        if not token:
            return None
        return await self.materialize(token)
