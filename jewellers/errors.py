# jewellers/errors.py
"""Failures raised by the store and the CRUD layer.

Every error is scoped to the request that caused it; the session is rolled
back before it reaches the caller.
"""


class StoreError(Exception):
    status_code = 400

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'error': type(self).__name__, 'message': self.message}


class NotFound(StoreError):
    status_code = 404


class UniquenessError(StoreError):
    status_code = 409


class ReferentialIntegrityError(StoreError):
    status_code = 409


class DomainConstraintError(StoreError):
    status_code = 422


class PayloadError(StoreError):
    status_code = 400


# pydantic error types that mean "well-formed but outside the column's domain"
DOMAIN_ERRORS = {
    'enum', 'string_too_long',
    'decimal_max_digits', 'decimal_max_places', 'decimal_whole_digits',
    'greater_than', 'greater_than_equal', 'less_than', 'less_than_equal',
}


def from_validation_error(exc, domain=True):
    """Map a pydantic ValidationError onto the store taxonomy.

    A malformed payload is a PayloadError. Values of the right shape that
    break a column bound or a closed enum are a DomainConstraintError, unless
    ``domain`` is false (query strings are always the caller's mistake).
    """
    errors = exc.errors(include_url=False)
    message = '; '.join(
        f"{'.'.join(str(part) for part in error['loc']) or 'value'}: {error['msg']}"
        for error in errors
    )
    if domain and all(error['type'] in DOMAIN_ERRORS for error in errors):
        return DomainConstraintError(message)
    return PayloadError(message)


def from_integrity_error(exc):
    """Map a database IntegrityError onto the store taxonomy.

    Only reached when a concurrent writer slips past the store's own checks,
    so the database constraint is the last line.
    """
    text = str(getattr(exc, 'orig', exc))
    lowered = text.lower()
    if 'unique' in lowered or 'duplicate' in lowered:
        return UniquenessError(text)
    if 'foreign key' in lowered:
        return ReferentialIntegrityError(text)
    if 'check' in lowered:
        return DomainConstraintError(text)
    if 'not null' in lowered or 'cannot be null' in lowered:
        return PayloadError(text)
    return StoreError(text)
