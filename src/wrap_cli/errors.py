from __future__ import annotations


class ValidationError(ValueError):
    """Raised when input fails validation. Carries every violation, keyed by field."""

    def __init__(self, errors: dict[str, list[str]]):
        self.errors = {field: list(messages) for field, messages in errors.items() if messages}
        super().__init__("; ".join(self.messages) or "invalid input")

    @property
    def messages(self) -> list[str]:
        """Every violation as a readable line; ``base`` errors carry no field prefix."""
        return [
            message if field == "base" else f"{field} {message}"
            for field, messages in self.errors.items()
            for message in messages
        ]


class NotFoundError(LookupError):
    """Raised when a record does not exist or does not belong to the requesting user."""


class DatabaseNotInitializedError(RuntimeError):
    """Raised when the database has no schema yet; ``wrap init`` creates it."""


class PushConfigurationError(RuntimeError):
    """Raised when push delivery is not configured (missing VAPID keys)."""


class DeliveryError(RuntimeError):
    """Base class for push delivery failures."""


class TransientDeliveryError(DeliveryError):
    """Network, timeout or push-service error; the subscription stays registered."""


class PermanentDeliveryError(DeliveryError):
    """Expired or invalid subscription; the subscription should be deregistered."""
