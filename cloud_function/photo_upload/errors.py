"""
Failures of the upload relay.
Each error carries the HTTP status and the user-facing (French) message
returned to the browser as {"success": false, "error": ...}.
"""


class RelayError(Exception):
    status = 500
    message = "Erreur serveur"

    def __init__(self, message: str | None = None):
        self.message = message or self.message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"success": False, "error": self.message}


class MethodNotAllowed(RelayError):
    status = 405
    message = "Method not allowed"


class ConfigurationError(RelayError):
    status = 500
    message = "Configuration error: missing credentials"


class UnsupportedFileType(RelayError):
    status = 400
    message = "Type de fichier non autorisé. Utilisez uniquement des images (JPG, PNG, GIF, WEBP, HEIC)."


class PayloadTooLarge(RelayError):
    status = 400

    def __init__(self, max_file_size: int = 10 * 1024 * 1024):
        super().__init__(f"Fichier trop volumineux. Maximum {format_size(max_file_size)}.")


def format_size(size: int) -> str:
    """10485760 -> '10MB', 1572864 -> '1.5MB', 1024 -> '1024 octets'."""
    mib = 1024 * 1024
    if size < mib:
        return f"{size} octets"
    if size % mib == 0:
        return f"{size // mib}MB"
    return f"{size / mib:.1f}MB"


class NoFileProvided(RelayError):
    status = 400
    message = "Aucun fichier reçu"


class UploadFailed(RelayError):
    status = 500

    def __init__(self, upstream_message: str):
        super().__init__("Erreur lors de l'envoi vers Drive: " + upstream_message)


class UploadTimeout(RelayError):
    status = 504
    message = "Délai dépassé lors de l'envoi vers Drive"


class TransportError(RelayError):
    status = 500
    message = "Erreur lors du traitement du fichier"


class InternalError(RelayError):
    status = 500

    def __init__(self, detail: str):
        super().__init__("Erreur serveur: " + detail)
