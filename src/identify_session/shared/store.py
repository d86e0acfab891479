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

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any

import httpx

from identify_session.shared.config import SessionConfig
from identify_session.shared.jwt_utils import StoreUnavailable, DuplicateProfile
from identify_session.shared.models import InternalProfile, normalize_email

logger = logging.getLogger(__name__)


class UserStore(ABC):
    """
    Persistent user store collaborator. Implementations must enforce email
    uniqueness: a second create for the same email raises DuplicateProfile.
    """

    @abstractmethod
    async def get_user(self, email: str) -> Optional[InternalProfile]:
        """Return the profile for `email`, or None when there is none."""
        pass

    @abstractmethod
    async def create_user(
        self, name: Optional[str], email: str, avatar_url: Optional[str]
    ) -> Optional[InternalProfile]:
        """
        Create a profile. May return None when the backend does not echo the record.
        """
        pass


class InMemoryUserStore(UserStore):
    """
    Process-local store. Meant for tests and single-process development servers.
    """

    def __init__(self):
        self._profiles: Dict[str, InternalProfile] = {}
        self._lock = asyncio.Lock()

    def __len__(self):
        return len(self._profiles)

    async def get_user(self, email: str) -> Optional[InternalProfile]:
        return self._profiles.get(normalize_email(email))

    async def create_user(
        self, name: Optional[str], email: str, avatar_url: Optional[str]
    ) -> Optional[InternalProfile]:
        key = normalize_email(email)
        async with self._lock:
            if key in self._profiles:
                raise DuplicateProfile(key)
            profile = InternalProfile(id=uuid.uuid4().hex, email=key, name=name, avatar_url=avatar_url)
            self._profiles[key] = profile
        logger.debug(f"InMemoryUserStore created profile {profile.id} for {key}")
        return profile


GET_USER_QUERY = """
query GetUser($email: String!) {
  user(by: { email: $email }) {
    id
    name
    email
    avatarUrl
    description
    githubUrl
    linkedinUrl
  }
}
"""

CREATE_USER_MUTATION = """
mutation CreateUser($input: UserCreateInput!) {
  userCreate(input: $input) {
    user {
      id
      name
      email
      avatarUrl
      description
      githubUrl
      linkedinUrl
    }
  }
}
"""

# GraphQL field name -> InternalProfile field name
_PROFILE_FIELDS = {
    "id": "id",
    "name": "name",
    "email": "email",
    "avatarUrl": "avatar_url",
    "description": "description",
    "githubUrl": "github_url",
    "linkedinUrl": "linkedin_url",
}


def _to_profile(record: Optional[Dict[str, Any]]) -> Optional[InternalProfile]:
    if not record:
        return None
    data = {_PROFILE_FIELDS.get(key, key): value for key, value in record.items()}
    return InternalProfile(**data)


class GraphQLUserStore(UserStore):
    """
    User store backed by a GraphQL API (Grafbase style schema).
    """

    def __init__(
        self,
        api_url: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            api_url: The GraphQL endpoint.
            api_key: Sent as the 'x-api-key' header when set.
            timeout: Per-request timeout in seconds, applied by httpx.
            transport: Optional httpx transport (e.g. httpx.MockTransport in tests).
        """
        self.api_url = api_url
        self.headers = {"x-api-key": api_key} if api_key else {}
        self.timeout = timeout
        self.transport = transport

    async def _execute(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.post(
                    self.api_url,
                    json={"query": query, "variables": variables},
                    headers=self.headers,
                )
                response.raise_for_status()
                body = response.json()
            except httpx.HTTPError as e:
                logger.error(f"User store request failed: {e}")
                raise StoreUnavailable(detail=f"User store request failed: {e}") from e
            except ValueError as e:
                logger.error(f"User store returned invalid JSON: {e}")
                raise StoreUnavailable(detail="User store returned invalid JSON") from e

        errors = body.get("errors")
        if errors:
            message = "; ".join(str(err.get("message", err)) for err in errors)
            raise StoreUnavailable(detail=f"User store error: {message}")
        return body.get("data") or {}

    async def get_user(self, email: str) -> Optional[InternalProfile]:
        data = await self._execute(GET_USER_QUERY, {"email": normalize_email(email)})
        return _to_profile(data.get("user"))

    async def create_user(
        self, name: Optional[str], email: str, avatar_url: Optional[str]
    ) -> Optional[InternalProfile]:
        key = normalize_email(email)
        variables = {"input": {"name": name, "email": key, "avatarUrl": avatar_url}}
        try:
            data = await self._execute(CREATE_USER_MUTATION, variables)
        except StoreUnavailable as e:
            if "unique" in e.detail.lower() or "already exists" in e.detail.lower():
                raise DuplicateProfile(key) from e
            raise
        created = (data.get("userCreate") or {}).get("user")
        logger.info(f"User store created profile for {key}")
        return _to_profile(created)


def build_user_store(config: SessionConfig) -> UserStore:
    if config.user_store_url:
        return GraphQLUserStore(config.user_store_url, api_key=config.user_store_api_key)
    logger.warning("No USER_STORE_URL configured, using an in-memory user store. Profiles will not persist.")
    return InMemoryUserStore()
