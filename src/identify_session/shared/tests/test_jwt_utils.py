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

# shared/tests/test_jwt_utils.py
import time
from unittest.mock import Mock, patch

import pytest
from jose import jwt

from identify_session.shared.codec import TokenCodec
from identify_session.shared.config import SessionConfig
from identify_session.shared.jwt_utils import check_token_expiration, InvalidToken, IdentityException
from identify_session.shared.models import SessionClaims

T = 1_700_000_000


@pytest.fixture
def config():
    return SessionConfig(secret="secret-k", issuer="identify-session")


@pytest.fixture
def clock():
    return Mock(return_value=T)


@pytest.fixture
def codec(config, clock):
    return TokenCodec(config, clock=clock)


# Tests for `check_token_expiration`
def test_valid_token():
    try:
        check_token_expiration({"exp": time.time() + 3600})
    except InvalidToken:
        pytest.fail("InvalidToken was raised for a valid token.")


def test_nearing_expiration_token():
    with pytest.raises(InvalidToken, match="Token expired or nearing expiration."):
        check_token_expiration({"exp": time.time() + 200}, threshold=300)


def test_expired_token():
    with pytest.raises(InvalidToken, match="Token expired or nearing expiration."):
        check_token_expiration({"exp": time.time() - 10})


def test_expiry_is_strict():
    with pytest.raises(InvalidToken):
        check_token_expiration({"exp": T}, now=T)
    check_token_expiration({"exp": T}, now=T - 1)


def test_missing_exp_claim():
    with pytest.raises(InvalidToken, match="Token does not have an expiration claim"):
        check_token_expiration({})


def test_invalid_token_is_identity_exception():
    err = InvalidToken()
    assert isinstance(err, IdentityException)
    assert err.status_code == 401


# Tests for `TokenCodec`
def test_round_trip_injects_issuer_and_expiry(codec):
    claims = {"user": {"email": "a@x.com", "name": "A"}, "expires": "2030-01-01T00:00:00Z"}
    decoded = codec.decode(codec.encode(claims))
    assert decoded == SessionClaims(**claims, iss="identify-session", exp=T + 3600)
    assert decoded.session_fields() == claims


def test_encode_overrides_caller_supplied_claims(codec):
    token = codec.encode({"user": {"email": "a@x.com"}, "iss": "forged", "exp": T + 10 ** 9})
    decoded = codec.decode(token)
    assert decoded.iss == "identify-session"
    assert decoded.exp == T + 3600


def test_encode_accepts_session_claims(codec):
    token = codec.encode(SessionClaims(user={"email": "a@x.com"}, exp=1))
    assert codec.decode(token).exp == T + 3600


def test_encode_does_not_mutate_input(codec):
    claims = {"user": {"email": "a@x.com"}}
    codec.encode(claims)
    assert claims == {"user": {"email": "a@x.com"}}


def test_decode_expired_after_ttl(codec, clock):
    token = codec.encode({"user": {"email": "a@x.com"}})
    clock.return_value = T + 3601
    with pytest.raises(InvalidToken):
        codec.decode(token)


def test_decode_valid_just_before_expiry(codec, clock):
    token = codec.encode({"user": {"email": "a@x.com"}})
    clock.return_value = T + 3599
    assert codec.decode(token).user == {"email": "a@x.com"}


def test_decode_wrong_secret(codec, clock):
    other = TokenCodec(SessionConfig(secret="another-secret"), clock=clock)
    token = other.encode({"user": {"email": "a@x.com"}})
    with pytest.raises(InvalidToken):
        codec.decode(token)


def test_decode_wrong_issuer(codec, clock):
    other = TokenCodec(SessionConfig(secret="secret-k", issuer="someone-else"), clock=clock)
    with pytest.raises(InvalidToken):
        codec.decode(other.encode({"user": {"email": "a@x.com"}}))


@pytest.mark.parametrize("cut", [1, 10])
def test_decode_truncated_token(codec, cut):
    token = codec.encode({"user": {"email": "a@x.com"}})
    with pytest.raises(InvalidToken):
        codec.decode(token[:-cut])


def test_decode_garbage(codec):
    for token in ["", "not-a-token", "a.b", "a.b.c"]:
        with pytest.raises(InvalidToken):
            codec.decode(token)


def test_decode_token_without_exp(codec):
    token = jwt.encode({"user": {}, "iss": "identify-session"}, "secret-k", algorithm="HS256")
    with pytest.raises(InvalidToken, match="expiration"):
        codec.decode(token)


def test_decode_fractional_exp_is_invalid_token(codec):
    token = jwt.encode({"user": {}, "iss": "identify-session", "exp": T + 100.5}, "secret-k", algorithm="HS256")
    with pytest.raises(InvalidToken, match="Malformed"):
        codec.decode(token)


def test_ttl_from_config(clock):
    codec = TokenCodec(SessionConfig(secret="k", ttl_seconds=60), clock=clock)
    assert codec.decode(codec.encode({})).exp == T + 60


@patch("identify_session.shared.codec.jwt.encode")
def test_signing_error_propagates(mock_encode, codec):
    mock_encode.side_effect = TypeError("Object of type set is not JSON serializable")
    with pytest.raises(TypeError):
        codec.encode({"user": {"email": "a@x.com"}})
