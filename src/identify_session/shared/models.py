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

from typing import Optional, Dict, Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from identify_session.shared.jwt_utils import MalformedIdentity


def normalize_email(email: str) -> str:
    return email.strip().lower()


class ExternalIdentity(BaseModel):
    """
    Attributes asserted by the identity provider for one sign-in event.
    """
    email: str = Field(..., description="User's email address, used as the reconciliation key.")
    name: Optional[str] = Field(None, description="Display name asserted by the provider.")
    image: Optional[str] = Field(None, description="Avatar URL asserted by the provider.")

    @field_validator("email")
    @classmethod
    def _email_not_blank(cls, value: str) -> str:
        value = normalize_email(value)
        if not value:
            raise ValueError("email must not be empty")
        return value

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> "ExternalIdentity":
        """
        Build an identity from a provider user mapping (next-auth style `user`
        object or raw OIDC claims, where the avatar is called `picture`).
        """
        if not claims or not claims.get("email"):
            raise MalformedIdentity(detail="Identity assertion is missing an email.")
        try:
            return cls(
                email=claims["email"],
                name=claims.get("name"),
                image=claims.get("image", claims.get("picture")),
            )
        except ValidationError as e:
            raise MalformedIdentity(detail=f"Invalid identity assertion: {e.errors()[0]['msg']}") from e

    def to_provider_session(self) -> Dict[str, Any]:
        return {"user": self.model_dump(exclude_none=True)}


class InternalProfile(BaseModel):
    """
    The application's own record of a user. Extra keys are kept, so stores may
    return internally-owned fields (linked projects, etc.) without a schema change.
    """
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = Field(None, description="Store-assigned identifier.")
    email: str = Field(..., description="Unique key of the profile.")
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    description: Optional[str] = None
    github_url: Optional[str] = None
    linkedin_url: Optional[str] = None


class SessionClaims(BaseModel):
    """
    Payload embedded in a session token: the provider session fields plus the
    codec-owned `iss` and `exp` claims.
    """
    model_config = ConfigDict(extra="allow")

    iss: Optional[str] = Field(None, description="Issuer, always set by the codec.")
    exp: Optional[int] = Field(None, description="Expiration timestamp (Unix epoch), always set by the codec.")

    def session_fields(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"iss", "exp"})


class MergedSession(BaseModel):
    """
    Session value exposed to the application: the provider session with the
    internal profile merged into `user`.
    """
    model_config = ConfigDict(extra="allow", frozen=True)

    # Provider sessions are opaque, a non-mapping `user` is kept as-is.
    user: Optional[Any] = None

    @property
    def email(self) -> Optional[str]:
        return self.user.get("email") if isinstance(self.user, dict) else None

    def as_dict(self) -> Dict[str, Any]:
        # Only the keys the session was built with; a fallback session compares
        # equal to the provider session it came from.
        data = dict(self.model_extra or {})
        if "user" in self.model_fields_set:
            data["user"] = dict(self.user) if isinstance(self.user, dict) else self.user
        return data
