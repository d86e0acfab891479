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
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Union

from identify_session.shared.jwt_utils import IdentityException
from identify_session.shared.models import ExternalIdentity, InternalProfile, MergedSession
from identify_session.shared.reconciler import IdentityReconciler

logger = logging.getLogger(__name__)

IdentityInput = Union[ExternalIdentity, Mapping[str, Any]]


def merge_session(provider_session: Mapping[str, Any], profile: InternalProfile) -> MergedSession:
    """
    Shallow-merge an internal profile into the provider session's `user`.

    Profile fields win on key collision; profile fields that are None are
    skipped. The provider session is not modified.
    """
    user: Dict[str, Any] = dict(provider_session.get("user") or {})
    user.update(profile.model_dump(exclude_none=True))
    merged = dict(provider_session)
    merged["user"] = user
    return MergedSession(**merged)


class SessionEventHandler(ABC):
    """
    Extension points called by the hosting framework.
    """

    @abstractmethod
    async def on_sign_in(self, identity: IdentityInput) -> bool:
        """Decide whether a freshly authenticated identity may sign in."""
        pass

    @abstractmethod
    async def on_session_materialize(self, provider_session: Mapping[str, Any]) -> MergedSession:
        """Produce the session value exposed to the rest of the application."""
        pass


class SessionCallbacks(SessionEventHandler):
    """
    Sign-in gate and session assembler backed by an IdentityReconciler.
    """

    def __init__(self, reconciler: IdentityReconciler):
        self.reconciler = reconciler

    async def on_sign_in(self, identity: IdentityInput) -> bool:
        """
        Reconcile the identity (creating the profile if needed) and admit it.

        Never raises: every failure is logged and turned into a deny decision.
        """
        try:
            if not isinstance(identity, ExternalIdentity):
                identity = ExternalIdentity.from_claims(identity)
            await self.reconciler.reconcile(identity)
        except IdentityException as e:
            logger.warning(f"Sign-in denied: {e.detail}")
            return False
        except Exception as e:
            logger.error(f"Sign-in denied after unexpected error: {e}", exc_info=True)
            return False
        logger.info(f"Sign-in admitted for {identity.email}")
        return True

    async def on_session_materialize(self, provider_session: Mapping[str, Any]) -> MergedSession:
        """
        Merge the stored profile into the provider session.

        Falls back to the provider session unchanged when there is no email,
        no stored profile or the store cannot be reached. Never creates profiles.
        """
        fallback = MergedSession(**provider_session)
        user = provider_session.get("user")
        email = user.get("email") if isinstance(user, Mapping) else None
        if not email:
            logger.debug("Provider session has no user email, returning it unmodified.")
            return fallback

        try:
            profile = await self.reconciler.lookup(email)
        except IdentityException as e:
            logger.warning(f"Error retrieving user data for {email}: {e.detail}")
            return fallback

        if profile is None:
            logger.warning(f"No internal profile for {email}, using provider session only.")
            return fallback
        return merge_session(provider_session, profile)
