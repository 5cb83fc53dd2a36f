"""Error taxonomy shared by both handlers."""


class TaskNotesError(Exception):
    """Base class for every error the handlers map to a response."""

    # save step that was running when the error surfaced, if any
    step = None


class ConfigurationError(TaskNotesError):
    """Backend credentials or settings are missing or invalid. Always a 500."""


class AuthError(TaskNotesError):
    """initData is missing, unparsable or carries a bad signature."""


class ConnectivityError(TaskNotesError):
    """The store could not be reached at all."""


class QueryError(TaskNotesError):
    """A single select/insert/upsert/delete/rpc call was rejected by the store."""

    def __init__(self, message, relation=None, operation=None):
        super().__init__(message)
        self.relation = relation
        self.operation = operation


class PayloadError(TaskNotesError, ValueError):
    """The save body has malformed ``tasks``/``notes``. Always a 400."""
