# conftest.py
"""
Shared pytest fixtures.

- Fake AWS credentials so moto never falls through to a real account.
- An operator profile in a shared credentials file, used once the scanned
  account's environment credentials have been cleared.
- A recording stand-in for subprocess.run.
"""

import logging
import subprocess

import pytest

SCANNED_ENV_KEYS = [
    "AWS_SESSION_TOKEN",
    "AZURE_TENANT_ID",
    "AZURE_CLIENT_ID",
    "AZURE_CLIENT_SECRET",
    "AZURE_SUBSCRIPTION_ID",
    "CLOUDSDK_CORE_PROJECT",
]


class RecordingRunner:
    """
    Records every argv it is called with and answers through `respond(args)`,
    which returns (returncode, stdout) or raises.
    """

    def __init__(self, respond=None):
        self.calls = []
        self.respond = respond or (lambda args: (0, ""))

    def __call__(self, args, **kwargs):
        self.calls.append(list(args))
        returncode, stdout = self.respond(list(args))
        return subprocess.CompletedProcess(args, returncode, stdout=stdout, stderr="")


@pytest.fixture
def runner():
    return RecordingRunner


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.delenv("AWS_PROFILE", raising=False)
    for name in SCANNED_ENV_KEYS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def operator_profile(tmp_path, monkeypatch):
    """
    Baseline operator identity, resolved from a credentials file rather than the environment.
    """
    creds = tmp_path / "aws-credentials"
    creds.write_text(
        "[default]\n"
        "aws_access_key_id = AKIAOPERATOR000000000\n"
        "aws_secret_access_key = operator-secret\n",
        encoding="utf-8",
    )
    config = tmp_path / "aws-config"
    config.write_text("[default]\nregion = us-east-1\n", encoding="utf-8")
    monkeypatch.setenv("AWS_SHARED_CREDENTIALS_FILE", str(creds))
    monkeypatch.setenv("AWS_CONFIG_FILE", str(config))
    return "AKIAOPERATOR000000000"


@pytest.fixture(autouse=True)
def restore_root_logging():
    """
    main.configure_logging replaces the root handlers; drop them after each test.
    """
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)
