from typing import Optional


class AdsPilotError(Exception):
    """Erreur de base du moteur d'automatisation"""


class ConfigurationError(AdsPilotError):
    """JSON de conditions/actions invalide sur une règle"""

    def __init__(self, message: str, rule_id: Optional[int] = None):
        super().__init__(message)
        self.rule_id = rule_id


class MetricUnavailableError(AdsPilotError):
    """Donnée de rapport absente. Le résolveur retourne 0 au lieu de la lever."""


class ExternalCallError(AdsPilotError):
    """Échec réseau, timeout ou HTTP 4xx/5xx côté marketplace"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CredentialExpiredError(ExternalCallError):
    """Session (cookies) du toko expirée ou absente"""

    def __init__(self, toko_id: str, message: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message or f"Sesi toko {toko_id} kedaluwarsa", status_code)
        self.toko_id = toko_id


class AccessDeniedError(AdsPilotError):
    """Accès refusé aux logs d'un toko"""


class LogNotFoundError(AdsPilotError):
    """Log d'exécution ou règle associée introuvable"""
