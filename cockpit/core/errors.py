"""Error taxonomy shared by the stores, the security layer and the routes.

Each error carries the HTTP status it maps to and a user-facing message.
Messages stay generic where details would leak (credentials, permissions).
"""


class CockpitError(Exception):
    status_code = 400
    default_message = "Requête invalide."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationError(CockpitError):
    status_code = 401
    default_message = "Identifiants invalides."


class PermissionDenied(CockpitError):
    status_code = 403
    default_message = "Accès refusé."


class RecordError(CockpitError):
    status_code = 400
    default_message = "Enregistrement invalide."


class RecordNotFound(RecordError):
    status_code = 404
    default_message = "Client introuvable."


class StoreError(CockpitError):
    status_code = 500
    default_message = "Erreur serveur inconnue"


__all__ = [
    "CockpitError",
    "AuthenticationError",
    "PermissionDenied",
    "RecordError",
    "RecordNotFound",
    "StoreError",
]
