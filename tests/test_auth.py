# tests/test_auth.py

"""
Tests for bearer-token authentication and role guards.
"""

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from unittest.mock import Mock, patch

from dependencies.auth import CurrentUser, get_current_user, requires_role


def creds(token="test-token"):
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


def auth_response(role="agent", email="a1@agents.test"):
    user = Mock()
    user.id = "A1"
    user.email = email
    user.user_metadata = {"role": role, "full_name": "Agent One"}
    return Mock(user=user)


def test_get_current_user_reads_role_from_metadata():
    with patch("dependencies.auth.get_supabase_client") as mock_supabase:
        mock_client = Mock()
        mock_client.auth.get_user.return_value = auth_response(role="admin")
        mock_supabase.return_value = mock_client

        user = get_current_user(creds())

    assert user.id == "A1"
    assert user.role == "admin"
    assert user.is_admin


def test_unknown_role_falls_back_to_renter():
    with patch("dependencies.auth.get_supabase_client") as mock_supabase:
        mock_client = Mock()
        mock_client.auth.get_user.return_value = auth_response(role="superuser")
        mock_supabase.return_value = mock_client

        user = get_current_user(creds())

    assert user.role == "renter"


def test_invalid_token_is_401():
    with patch("dependencies.auth.get_supabase_client") as mock_supabase:
        mock_client = Mock()
        mock_client.auth.get_user.side_effect = Exception("bad jwt")
        mock_supabase.return_value = mock_client

        with pytest.raises(HTTPException) as exc:
            get_current_user(creds("expired"))

    assert exc.value.status_code == 401


def test_requires_role_blocks_other_roles():
    checker = requires_role(["admin"])
    agent = CurrentUser(id="A1", email="a1@agents.test", role="agent")

    with pytest.raises(HTTPException) as exc:
        checker(current_user=agent)

    assert exc.value.status_code == 403
