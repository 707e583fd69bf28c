from __future__ import annotations


class ContraAlertsError(Exception):
    """Base class for errors that end a run."""


class AuthExpired(ContraAlertsError):
    """The rendered page redirected to a login screen; the session must be refreshed."""


class TransientRenderError(ContraAlertsError):
    """Navigation or network failure while rendering. Eligible for one retry."""


class NotificationError(ContraAlertsError):
    pass


class StatePersistenceError(ContraAlertsError):
    pass
