"""
tests/test_signin.py — POST /api/auth/signin and the /signin page
"""
from __future__ import annotations

import pytest


def test_api_signin_sets_cookies_and_redirects(client):
    response = client.post(
        "/api/auth/signin",
        data={"email": "admin@example.com", "password": "s3cret"},
        follow_redirects=False,
    )
    assert response.status_code == 302
    assert response.headers["location"] == "/admin/dashboard"
    assert response.cookies.get("sb-access-token") == "access-1"
    assert response.cookies.get("sb-refresh-token") == "refresh-1"


@pytest.mark.parametrize("data", [
    {"email": "admin@example.com"},
    {"password": "s3cret"},
    {"email": "", "password": ""},
])
def test_api_signin_requires_both_fields(client, backend, data):
    response = client.post("/api/auth/signin", data=data, follow_redirects=False)
    assert response.status_code == 400
    assert response.text == "Email and password are required"
    assert response.headers["content-type"].startswith("text/plain")
    assert backend.calls == []


def test_api_signin_relays_backend_error(client):
    response = client.post(
        "/api/auth/signin",
        data={"email": "admin@example.com", "password": "wrong"},
        follow_redirects=False,
    )
    assert response.status_code == 400
    assert response.text == "Invalid login credentials"
    assert "sb-access-token" not in response.cookies


def test_api_signin_unexpected_error(client, backend):
    def explode(operation, target):
        raise RuntimeError("socket closed")

    backend.on_call = explode
    response = client.post(
        "/api/auth/signin",
        data={"email": "admin@example.com", "password": "s3cret"},
        follow_redirects=False,
    )
    assert response.status_code == 500
    assert response.text == "Server error"


def test_signin_page_renders(client):
    response = client.get("/signin")
    assert response.status_code == 200
    assert "Iniciar sesion" in response.text


def test_signin_page_translates_error(client):
    response = client.post(
        "/signin",
        data={"email": "admin@example.com", "password": "wrong"},
        follow_redirects=False,
    )
    assert response.status_code == 400
    assert "Hubo un error al iniciar sesión: Credenciales de inicio de sesión no válidas." in response.text


def test_signin_page_success_redirects(client):
    response = client.post(
        "/signin",
        data={"email": "admin@example.com", "password": "s3cret"},
        follow_redirects=False,
    )
    assert response.status_code == 303
    assert response.headers["location"] == "/admin/dashboard"
    assert response.cookies.get("sb-access-token") == "access-1"
