from __future__ import annotations

UNKNOWN_ERROR_MESSAGE = "Ocorreu um erro desconhecido."


class DashboardError(Exception):
    """Base class for errors surfaced to the user."""


class LoadFailure(DashboardError):
    """The sales source could not be fetched or parsed."""


class ValidationFailure(DashboardError):
    """User input was rejected; no state was changed."""


def user_message(exc: BaseException) -> str:
    msg = str(exc).strip()
    return msg or UNKNOWN_ERROR_MESSAGE
