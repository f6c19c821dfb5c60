# assessment/errors.py
"""
Runner exceptions.

MissingSecret, InvalidCredentialFormat and AuthError are terminal for the
session. Messages name parameter paths and providers, never secret values.
"""


class AssessmentError(Exception):
    """Base class for runner errors."""


class MissingSecret(AssessmentError):
    """No usable secret at the expected secret store path."""

    def __init__(self, path: str):
        super().__init__(f"No credentials found at {path}")
        self.path = path


class MissingRole(MissingSecret):
    def __init__(self, path: str):
        super().__init__(path)
        self.args = (f"Missing Role ARN at {path}",)


class InvalidCredentialFormat(AssessmentError):
    """The secret exists but cannot be normalized into the expected document."""


class AuthError(AssessmentError):
    """The identity exchange rejected the credentials."""


class UnsupportedProvider(AuthError):
    def __init__(self, tag: str):
        super().__init__(f"Cloud Service Provider invalid: {tag}")
        self.tag = tag


class DryRunRequested(Exception):
    """
    Raised by the scan invoker in dry-run mode to stop the session after the
    command has been printed. Not an error: the process exits 0.
    """

    def __init__(self, command):
        super().__init__(" ".join(command))
        self.command = list(command)
