# adslots/errors.py
"""
Domain error taxonomy.

Every error carries the HTTP status it maps to and a Dutch, user-facing
message. Outcomes that are expected under contention (capacity unavailable,
claim race lost, duplicate generation) are NOT errors and are returned as
result objects by the services instead.
"""

from typing import Optional


class DomainError(Exception):
    status_code = 400
    code = "domain_error"
    message = "Er ging iets mis met je verzoek."

    def __init__(self, message: Optional[str] = None, **context):
        self.message = message or self.message
        self.context = context
        super().__init__(self.message)


class ValidationError(DomainError):
    status_code = 400
    code = "validation_error"
    message = "Ongeldige invoer."


class NotFound(DomainError):
    status_code = 404
    code = "not_found"
    message = "Niet gevonden."


class TokenInvalid(DomainError):
    status_code = 404
    code = "token_invalid"
    message = "Deze link is ongeldig. Controleer of je de volledige link uit de e-mail hebt gebruikt."


class TokenExpired(DomainError):
    status_code = 410
    code = "token_expired"
    message = (
        "Deze uitnodiging is verlopen. Uitnodigingen zijn 48 uur geldig; "
        "neem contact met ons op om weer op de wachtlijst te komen."
    )


class TokenAlreadyClaimed(DomainError):
    status_code = 410
    code = "token_already_claimed"
    message = "Deze plek is al geclaimd. Je kunt direct verder met je aanmelding."


class InvalidTransition(DomainError):
    status_code = 409
    code = "invalid_transition"
    message = "Deze statuswijziging is niet toegestaan."


class SnapshotLocked(DomainError):
    status_code = 409
    code = "snapshot_locked"
    message = "Deze maand is afgesloten en kan niet meer worden gewijzigd."


class InvalidSnapshotState(DomainError):
    status_code = 409
    code = "invalid_snapshot_state"
    message = "Deze stap kan in de huidige status van de maandafsluiting niet worden uitgevoerd."


class SnapshotCorrupted(DomainError):
    status_code = 422
    code = "snapshot_corrupted"
    message = "Snapshot data is beschadigd. Neem contact op met de beheerder."


class SweepAlreadyRunning(DomainError):
    status_code = 409
    code = "sweep_already_running"
    message = "De wachtlijstcontrole draait al. Probeer het over enkele minuten opnieuw."


class CapacityExceeded(DomainError):
    status_code = 409
    code = "capacity_exceeded"
    message = "Deze locatie zit vol; er kan geen extra advertentie live."
