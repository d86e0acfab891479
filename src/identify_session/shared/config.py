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

import os
import logging
from typing import Optional, Mapping

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60 * 60


class SessionConfig(BaseModel):
    """
    Process-wide settings for the session core. Built once at startup and
    passed explicitly to the codec and the store factory.
    """
    secret: str = Field(..., description="Symmetric key used to sign session tokens.")
    issuer: str = Field("identify-session", description="Value of the 'iss' claim.")
    algorithm: str = Field("HS256", description="JWS algorithm used for signing.")
    ttl_seconds: int = Field(DEFAULT_TTL_SECONDS, gt=0, description="Lifetime of an issued token.")
    cookie_name: str = Field("session-token", description="Cookie carrying the session token.")
    user_store_url: Optional[str] = Field(None, description="GraphQL endpoint of the user store.")
    user_store_api_key: Optional[str] = Field(None, description="API key sent to the user store.")

    @field_validator("secret")
    @classmethod
    def _secret_not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("secret cannot be empty.")
        return value

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SessionConfig":
        """
        Load the configuration from environment variables:

            SESSION_SECRET (required), SESSION_ISSUER, SESSION_ALGORITHM,
            SESSION_TTL_SECONDS, SESSION_COOKIE_NAME,
            USER_STORE_URL, USER_STORE_API_KEY
        """
        env = os.environ if environ is None else environ
        mapping = {
            "secret": "SESSION_SECRET",
            "issuer": "SESSION_ISSUER",
            "algorithm": "SESSION_ALGORITHM",
            "ttl_seconds": "SESSION_TTL_SECONDS",
            "cookie_name": "SESSION_COOKIE_NAME",
            "user_store_url": "USER_STORE_URL",
            "user_store_api_key": "USER_STORE_API_KEY",
        }
        values = {field: env[key] for field, key in mapping.items() if env.get(key)}
        if "secret" not in values:
            raise ValueError("SESSION_SECRET environment variable is required.")
        logger.debug(f"Loaded session configuration from environment: {sorted(values)}")
        return cls(**values)
