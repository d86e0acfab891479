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

# flask_middleware/tests/test_flask_identify.py
import asyncio
import time
from unittest.mock import AsyncMock

import pytest
from flask import Flask, jsonify, g, make_response

from identify_session.flask_middleware.flask_identify import FlaskSessionMiddleware, current_session
from identify_session.flask_middleware.tools import require_auth, set_session_cookie
from identify_session.shared.config import SessionConfig
from identify_session.shared.models import ExternalIdentity
from identify_session.shared.session import SessionBridge
from identify_session.shared.store import InMemoryUserStore

COOKIE = "session-token"


@pytest.fixture
def now():
    return {"t": int(time.time())}


@pytest.fixture
def store():
    return InMemoryUserStore()


@pytest.fixture
def bridge(store, now):
    return SessionBridge(SessionConfig(secret="test-secret"), store, clock=lambda: now["t"])


@pytest.fixture
def app(bridge):
    app = Flask(__name__)
    FlaskSessionMiddleware(app, bridge=bridge)

    @app.route("/secure-data")
    @require_auth
    def secure_data():
        return jsonify(email=current_session.email, user=g.session.user)

    @app.route("/public")
    def public():
        return jsonify(signed_in=g.session is not None)

    @app.route("/login", methods=["POST"])
    def login():
        token = asyncio.run(bridge.sign_in(ExternalIdentity(email="a@x.com", name="A")))
        return set_session_cookie(make_response(jsonify(ok=True)), bridge, token, secure=False)

    return app


def _token(bridge):
    return asyncio.run(bridge.sign_in(ExternalIdentity(email="a@x.com", name="A", image="img1")))


def test_requires_auth(app):
    client = app.test_client()
    assert client.get("/secure-data").status_code == 401
    assert client.get("/public").get_json() == {"signed_in": False}


def test_cookie_session(app, bridge):
    client = app.test_client()
    client.set_cookie(COOKIE, _token(bridge))
    response = client.get("/secure-data")
    assert response.status_code == 200
    body = response.get_json()
    assert body["email"] == "a@x.com"
    assert body["user"]["avatar_url"] == "img1"


def test_bearer_session(app, bridge):
    client = app.test_client()
    response = client.get("/secure-data", headers={"Authorization": f"Bearer {_token(bridge)}"})
    assert response.status_code == 200


def test_login_sets_cookie(app, store):
    client = app.test_client()
    assert client.post("/login").status_code == 200
    assert client.get_cookie(COOKIE) is not None
    assert client.get("/secure-data").status_code == 200
    assert len(store) == 1


def test_expired_cookie_is_cleared(app, bridge, now):
    client = app.test_client()
    client.set_cookie(COOKIE, _token(bridge))
    now["t"] += 3601
    response = client.get("/public")
    assert response.get_json() == {"signed_in": False}
    assert COOKIE in response.headers.get("Set-Cookie", "")


def test_invalid_cookie_falls_back_to_bearer(app, bridge):
    client = app.test_client()
    client.set_cookie(COOKIE, "not-a-token")
    response = client.get("/secure-data", headers={"Authorization": f"Bearer {_token(bridge)}"})
    assert response.status_code == 200
    assert response.get_json()["email"] == "a@x.com"
    assert COOKIE in response.headers.get("Set-Cookie", "")


def test_store_outage_keeps_provider_session(app, bridge, store):
    client = app.test_client()
    client.set_cookie(COOKIE, _token(bridge))
    store.get_user = AsyncMock(side_effect=ConnectionError("backend down"))
    response = client.get("/secure-data")
    assert response.status_code == 200
    assert response.get_json()["user"] == {"email": "a@x.com", "name": "A", "image": "img1"}


def test_init_app_requires_bridge():
    with pytest.raises(RuntimeError):
        FlaskSessionMiddleware(Flask(__name__))
