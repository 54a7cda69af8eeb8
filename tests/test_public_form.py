"""
tests/test_public_form.py — GET/POST / submission form
"""
from __future__ import annotations

from schoolsecrets.services.school_selector import INCOMPLETE_FORM_MESSAGE, SCHOOL_REQUIRED_MESSAGE


def test_form_lists_localities_of_the_only_department(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "Crear nuevo post" in response.text
    assert 'name="departamento" value="CONCORDIA"' in response.text
    assert "La Criolla" in response.text
    assert "Parana" not in response.text


def test_form_lists_schools_for_locality(client):
    response = client.get("/", params={"localidad": "CONCORDIA"})
    assert response.status_code == 200
    assert "Escuela Normal" in response.text
    assert "Colegio Nacional" in response.text
    assert "Escuela Tecnica 2" not in response.text


def test_form_load_failure(client, backend):
    backend.fail("select", "connection refused")
    response = client.get("/")
    assert response.status_code == 500
    assert "Failed to load schools data" in response.text


def test_submit_without_school_is_blocked(client, backend):
    response = client.post("/", data={"titulo": "t", "content": "c", "localidad": "CONCORDIA"})
    assert response.status_code == 200
    assert SCHOOL_REQUIRED_MESSAGE in response.text
    assert ("insert", "secrets") not in backend.calls


def test_submit_with_empty_fields_is_blocked(client, backend):
    response = client.post("/", data={
        "titulo": "", "content": "algo", "localidad": "LA CRIOLLA", "nombre": "ESCUELA 5",
    })
    assert INCOMPLETE_FORM_MESSAGE in response.text
    assert ">algo</textarea>" in response.text
    assert ("insert", "secrets") not in backend.calls


def test_submit_creates_secret_and_resets_form(client, backend):
    response = client.post("/", data={
        "titulo": "Mi titulo", "content": "Mi secreto",
        "departamento": "CONCORDIA", "localidad": "LOS CHARRUAS", "nombre": "ESCUELA TECNICA 2",
    })
    assert response.status_code == 200
    assert "Post creado: tu post fue creado correctamente." in response.text
    assert "Mi secreto" not in response.text

    created = backend.tables["secrets"][-1]
    assert created["titulo"] == "Mi titulo"
    assert created["school"] == 5
    assert created["approved"] is True


def test_submit_backend_failure_keeps_fields(client, backend):
    backend.fail("insert", "duplicate key value")
    response = client.post("/", data={
        "titulo": "Mi titulo", "content": "Mi secreto",
        "localidad": "LA CRIOLLA", "nombre": "ESCUELA 5",
    })
    assert "No se pudo crear el post: duplicate key value" in response.text
    assert 'value="Mi titulo"' in response.text
