"""Tests for the signed-in session context."""

import json

import pytest

from src.backend.session import (
    AuthError,
    AuthSession,
    clear_session,
    decode_jwt_payload,
    load_session,
    save_session,
    session_from_auth_response,
)
from tests.conftest import make_jwt


class TestDecodeJwtPayload:
    def test_decodes_payload(self):
        assert decode_jwt_payload(make_jwt({"id": 7, "email": "a@b.c"})) == {
            "id": 7, "email": "a@b.c",
        }

    def test_wrong_part_count(self):
        with pytest.raises(AuthError, match="Invalid token format"):
            decode_jwt_payload("only.two")

    def test_garbage_payload(self):
        with pytest.raises(AuthError, match="Failed to decode token"):
            decode_jwt_payload("a.!!!notbase64!!!.c")


class TestSessionFromAuthResponse:
    @pytest.mark.parametrize("key", ["authToken", "token", "auth_token"])
    def test_token_keys(self, key):
        token = make_jwt({"id": 42})
        session = session_from_auth_response({key: token})
        assert session == AuthSession(token=token, user_id="42")

    def test_bare_string(self):
        token = make_jwt({"id": "abc"})
        assert session_from_auth_response(token).user_id == "abc"

    def test_first_present_key_wins(self):
        first, second = make_jwt({"id": 1}), make_jwt({"id": 2})
        session = session_from_auth_response({"authToken": first, "token": second})
        assert session.user_id == "1"

    def test_missing_token(self):
        with pytest.raises(AuthError, match="No auth token received"):
            session_from_auth_response({"message": "ok"})

    def test_none_response(self):
        with pytest.raises(AuthError, match="No auth token received"):
            session_from_auth_response(None)

    def test_missing_id_claim(self):
        with pytest.raises(AuthError, match="'id' claim"):
            session_from_auth_response({"authToken": make_jwt({"sub": "x"})})


class TestSessionFile:
    def test_round_trip(self, tmp_path, auth_session):
        path = tmp_path / "session.json"
        save_session(auth_session, path)
        assert load_session(path) == auth_session

    def test_missing_file_is_signed_out(self, tmp_path):
        assert load_session(tmp_path / "none.json") is None

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{not json")
        with pytest.raises(AuthError, match="Corrupt session file"):
            load_session(path)

    def test_missing_fields(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text(json.dumps({"token": "x"}))
        with pytest.raises(AuthError):
            load_session(path)

    def test_clear(self, tmp_path, auth_session):
        path = tmp_path / "session.json"
        save_session(auth_session, path)
        assert clear_session(path) is True
        assert not path.exists()
        assert clear_session(path) is False
