class DomainError(Exception):
    """Base class for errors raised by the reservation engine."""


class ValidationError(DomainError):
    """Malformed date/time strings, out-of-range values or inconsistent configuration."""


class SettingsRejectedError(DomainError):
    def __init__(self, violations: list[str]) -> None:
        super().__init__("; ".join(violations))
        self.violations = list(violations)


class BookingNotFoundError(DomainError):
    pass


class CancelNotAllowedError(DomainError):
    pass


class VersionConflictError(DomainError):
    pass


class PaymentNotAllowedError(DomainError):
    pass
