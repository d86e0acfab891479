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

from identify_session.shared.jwt_utils import IdentityException
from identify_session.shared.models import ExternalIdentity

try:
    from google.oauth2 import id_token
    from google.auth.transport import requests as google_requests
except ImportError:
    id_token = None
    google_requests = None

logger = logging.getLogger(__name__)


def verify_google_id_token(credential: str, audience: str) -> ExternalIdentity:
    """
    Verify a Google ID token (e.g. the `credential` posted by Google Identity
    Services) and return the identity it asserts.
    """
    if not id_token or not google_requests:
        raise ImportError("google-auth library required for verify_google_id_token. pip install identify-session[google]")
    try:
        claims = id_token.verify_oauth2_token(credential, google_requests.Request(), audience=audience)
    except ValueError as e:
        logger.info(f"Google ID token validation failed: {e}")
        raise IdentityException(status_code=401, detail=f"Invalid Google ID token: {e}") from e
    if claims.get("email_verified") is False:
        raise IdentityException(status_code=403, detail="Google account email is not verified")
    return ExternalIdentity.from_claims(claims)
