"""
schoolsecrets/utils/auth_messages.py — Spanish messages for backend auth error codes
Shown on the sign-in page; the JSON/plain-text API relays the backend message as-is.
"""
from __future__ import annotations

from typing import Optional

DEFAULT_MESSAGE = "Error desconocido. Intenta nuevamente."

AUTH_ERROR_MESSAGES: dict[str, str] = {
    "bad_json": "El cuerpo de la solicitud no es un JSON válido.",
    "bad_jwt": "El token JWT no es válido.",
    "captcha_failed": "La verificación del captcha falló.",
    "email_address_invalid": "La dirección de correo electrónico no es válida.",
    "email_not_confirmed": "El correo electrónico no ha sido confirmado.",
    "email_provider_disabled": "Los registros de correo electrónico están deshabilitados.",
    "flow_state_expired": "El estado del flujo ha expirado. Intenta nuevamente.",
    "insufficient_aal": "Se requiere un nivel de autenticación más alto.",
    "invalid_credentials": (
        "Credenciales de inicio de sesión no válidas. Verifica tu correo y contraseña."
    ),
    "no_authorization": "Se requiere un encabezado de autorización.",
    "not_admin": "El usuario no tiene permisos de administrador.",
    "over_request_rate_limit": "Se han enviado demasiadas solicitudes desde esta IP.",
    "refresh_token_not_found": "No se encontró el token de actualización.",
    "refresh_token_already_used": "El token de actualización ha sido revocado.",
    "request_timeout": "El procesamiento de la solicitud tomó demasiado tiempo.",
    "session_expired": "La sesión ha expirado.",
    "session_not_found": "La sesión no se encontró.",
    "unexpected_failure": "Error inesperado en el servicio de autenticación.",
    "user_banned": "El usuario está prohibido.",
    "user_not_found": "El usuario no se encontró.",
    "validation_failed": "Los parámetros proporcionados no están en el formato esperado.",
    # Older GoTrue releases answer a bad password with an OAuth-style error
    "invalid_grant": (
        "Credenciales de inicio de sesión no válidas. Verifica tu correo y contraseña."
    ),
}


def translate_auth_error(code: Optional[str]) -> str:
    if not code:
        return DEFAULT_MESSAGE
    return AUTH_ERROR_MESSAGES.get(code, DEFAULT_MESSAGE)
