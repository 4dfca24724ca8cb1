"""
Erreurs métier du pointage.
Levées par les services, traduites en réponses HTTP par les routers.
"""


class AttendanceError(Exception):
    """Base des erreurs de pointage."""

    default_message = "Erreur de pointage."

    def __init__(self, message: str = ""):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class InvalidPayload(AttendanceError):
    """Le contenu scanné ne peut pas être décodé."""

    default_message = "QR code invalide."


class IdentityNotFound(AttendanceError):
    """Le QR code est lisible mais ne correspond à aucun apprenant ni coach."""

    default_message = "QR code invalide : personne introuvable."


class IdentityInactive(AttendanceError):
    default_message = "Compte inactif : pointage refusé."


class InvalidScanTime(AttendanceError):
    """Scan de départ daté avant (ou à) l'heure d'arrivée : horloge incohérente."""

    default_message = "Heure de scan antérieure à l'arrivée enregistrée."


class PersistenceConflict(AttendanceError):
    """La contrainte d'unicité a rejeté une création concurrente."""

    default_message = "Enregistrement déjà créé par un autre scan."


class PersistenceUnavailable(AttendanceError):
    """Base de données momentanément inaccessible : à réessayer manuellement."""

    default_message = "Service momentanément indisponible, veuillez réessayer."
