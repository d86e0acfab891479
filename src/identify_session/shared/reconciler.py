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

from identify_session.shared.jwt_utils import IdentityException, StoreUnavailable, DuplicateProfile
from identify_session.shared.models import ExternalIdentity, InternalProfile, normalize_email
from identify_session.shared.store import UserStore

logger = logging.getLogger(__name__)


class IdentityReconciler:
    """
    Matches a verified external identity with the internal profile of the same
    email, provisioning the profile on first sign-in.

    No retries happen here: store failures surface as StoreUnavailable and the
    caller decides what to do with them.
    """

    def __init__(self, store: UserStore):
        self.store = store

    async def lookup(self, email: str) -> Optional[InternalProfile]:
        """Read-only lookup. Never creates a profile."""
        try:
            return await self.store.get_user(normalize_email(email))
        except IdentityException:
            raise
        except Exception as e:
            raise StoreUnavailable(detail=f"User lookup failed: {e}") from e

    async def _create(self, identity: ExternalIdentity) -> Optional[InternalProfile]:
        try:
            return await self.store.create_user(identity.name, identity.email, identity.image)
        except IdentityException:
            raise
        except Exception as e:
            raise StoreUnavailable(detail=f"User creation failed: {e}") from e

    async def reconcile(self, identity: ExternalIdentity) -> InternalProfile:
        profile = await self.lookup(identity.email)
        if profile is not None:
            # The stored profile is authoritative, fresh provider attributes are ignored.
            logger.debug(f"Found existing profile for {identity.email}")
            return profile

        try:
            created = await self._create(identity)
        except DuplicateProfile:
            # A concurrent sign-in provisioned the same email first.
            logger.info(f"Profile for {identity.email} was created concurrently, reusing it.")
            existing = await self.lookup(identity.email)
            if existing is None:
                raise StoreUnavailable(detail=f"Profile for {identity.email} reported as duplicate but not found")
            return existing

        logger.info(f"Provisioned new profile for {identity.email}")
        if created is None:
            return InternalProfile(email=identity.email, name=identity.name, avatar_url=identity.image)
        return created
