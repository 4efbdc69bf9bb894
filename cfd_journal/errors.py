# cfd_journal/errors.py
"""Error taxonomy raised by the journal engine."""


class JournalError(Exception):
    """Base class for all journal errors."""


class ValidationError(JournalError):
    """Bad input shape or range. Caller-fixable, never retried."""


class StateConflictError(JournalError):
    """Operation is incompatible with the current position/account state."""


class NotFoundError(JournalError):
    """Referenced position, account, symbol or fill does not exist."""


class DependencyError(JournalError):
    """Persistence failure, propagated unchanged to the caller."""
