# assessment/credentials.py
"""
Credential broker: turn secrets stored in SSM into short-lived provider credentials.

- aws: assume the client's role via STS and cache the rotated keys back in SSM.
- azure: service-principal login with the stored tenant/client/secret.
- gcp: activate a service-account key document and select the project.

  Only CLOUDSDK_CORE_PROJECT is exported. The key file is removed right after
  `gcloud auth activate-service-account`, so GOOGLE_APPLICATION_CREDENTIALS is
  never set; the scanner has to resolve Application Default Credentials from
  the gcloud credential store configuration (the activated account).

Every acquisition either returns installed ProviderCredentials or raises one
of MissingSecret, InvalidCredentialFormat or AuthError.
"""

import base64
import binascii
import contextlib
import json
import logging
import os
import subprocess
import tempfile
from typing import Any, Callable, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from config import (
    ASSUME_ROLE_DURATION_SECONDS,
    CREDENTIALS_PATH,
    CREDENTIALS_SUFFIX,
    ROLE_PATH,
    ROLE_SESSION_PREFIX,
)
from models import CloudProvider, ProviderCredentials
from assessment.errors import (
    AuthError,
    InvalidCredentialFormat,
    MissingRole,
    MissingSecret,
    UnsupportedProvider,
)
from assessment.secret_store import SecretStore

logger = logging.getLogger("mcsp_runner.credentials")

AZURE_ENV_KEYS = ["AZURE_TENANT_ID", "AZURE_CLIENT_ID", "AZURE_CLIENT_SECRET", "AZURE_SUBSCRIPTION_ID"]

Runner = Callable[..., subprocess.CompletedProcess]


# --- Secret normalization -------------------------------------------------

def normalize_azure_secret(raw: str) -> Dict[str, str]:
    """
    Parse the Azure secret blob, which may be JSON encoded as a JSON string.

    If the first parse fails the value is taken as already plain JSON.
    """
    text = raw.strip()
    try:
        doc = json.loads(text)
    except ValueError:
        doc = text
    if isinstance(doc, str):
        try:
            doc = json.loads(doc)
        except ValueError as e:
            raise InvalidCredentialFormat("Azure credentials are not a JSON document") from e
    if not isinstance(doc, dict):
        raise InvalidCredentialFormat("Azure credentials must be a JSON object")
    missing = [k for k in AZURE_ENV_KEYS if not doc.get(k)]
    if missing:
        raise InvalidCredentialFormat(f"Azure credentials missing fields: {', '.join(missing)}")
    return {k: str(doc[k]) for k in AZURE_ENV_KEYS}


def _unwrap_escaped(text: str) -> Any:
    # "{\"type\": ...}" with or without the outer quotes
    if text.startswith('"{'):
        inner = json.loads(text)
    elif text.startswith('{\\"'):
        inner = json.loads(f'"{text}"')
    else:
        return None
    return json.loads(inner) if isinstance(inner, str) else inner


def _parse_json(text: str) -> Any:
    doc = json.loads(text)
    if isinstance(doc, str):
        doc = json.loads(doc)
    return doc


def _parse_base64(text: str) -> Any:
    decoded = base64.b64decode("".join(text.split()), validate=True).decode("utf-8")
    return json.loads(decoded)


# A raw value that is already a plain JSON object is handled by _parse_json.
_KEY_DECODERS = [_unwrap_escaped, _parse_json, _parse_base64]


def normalize_service_account_key(raw: str) -> Dict[str, Any]:
    """
    Normalize a GCP service-account key that may be stored doubly JSON encoded,
    JSON encoded as a string, plain JSON or base64 encoded JSON.

    Decoders are tried in that order; the first one producing a JSON object wins.
    """
    text = (raw or "").strip()
    for decode in _KEY_DECODERS:
        try:
            doc = decode(text)
        except (ValueError, binascii.Error):
            continue
        if isinstance(doc, dict):
            return doc
    raise InvalidCredentialFormat("GCP credentials are neither JSON nor base64-encoded JSON")


# --- Broker ---------------------------------------------------------------

class CredentialBroker:
    """
    Acquire and install credentials for one provider.

    session_name is used as the STS role-session suffix so concurrent runs
    never collide. `run` executes the az/gcloud CLIs and defaults to subprocess.run.
    """

    def __init__(
        self,
        aws_session,
        session_name: str,
        region: Optional[str] = None,
        store: Optional[SecretStore] = None,
        run: Optional[Runner] = None,
        key_dir: Optional[str] = None,
    ):
        self.aws_session = aws_session
        self.session_name = session_name
        self.region = region
        self.store = store or SecretStore(aws_session, region=region)
        self.run = run or subprocess.run
        self.key_dir = key_dir
        self._strategies = {
            CloudProvider.AWS: self._acquire_aws,
            CloudProvider.AZURE: self._acquire_azure,
            CloudProvider.GCP: self._acquire_gcp,
        }

    def acquire(self, provider: str, client: str, account: str) -> ProviderCredentials:
        try:
            cloud = CloudProvider.parse(provider)
        except ValueError:
            raise UnsupportedProvider(provider) from None
        credentials = self._strategies[cloud](client, account)
        credentials.install()
        return credentials

    def _read(self, path: str) -> Optional[str]:
        try:
            return self.store.get(path)
        except (ClientError, BotoCoreError) as e:
            logger.error("Could not read %s: %s", path, e)
            return None

    def _exec(self, args: List[str]) -> subprocess.CompletedProcess:
        try:
            return self.run(args, capture_output=True, text=True)
        except OSError as e:
            raise AuthError(f"Could not execute {args[0]}: {e}") from e

    # aws

    def _acquire_aws(self, client: str, account: str) -> ProviderCredentials:
        logger.info("Starting AWS authentication...")
        role_path = ROLE_PATH.format(client=client, provider="aws", account=account)
        role_arn = self._read(role_path)
        if not role_arn:
            raise MissingRole(role_path)

        logger.info("Assuming role...")
        sts = self.aws_session.client("sts", region_name=self.region)
        try:
            resp = sts.assume_role(
                RoleArn=role_arn.strip(),
                RoleSessionName=f"{ROLE_SESSION_PREFIX}-{self.session_name}",
                DurationSeconds=ASSUME_ROLE_DURATION_SECONDS,
            )
        except (ClientError, BotoCoreError) as e:
            raise AuthError(f"AssumeRole failed for {role_arn}: {e}") from e

        creds = resp["Credentials"]
        env = {
            "AWS_ACCESS_KEY_ID": creds["AccessKeyId"],
            "AWS_SECRET_ACCESS_KEY": creds["SecretAccessKey"],
            "AWS_SESSION_TOKEN": creds["SessionToken"],
        }
        self._cache_rotated(client, account, env)
        logger.info("AWS authentication successful.")
        return ProviderCredentials(CloudProvider.AWS, env)

    def _cache_rotated(self, client: str, account: str, env: Dict[str, str]) -> bool:
        path = CREDENTIALS_PATH.format(client=client, provider="aws", account=account)
        try:
            self.store.put(path, json.dumps(env))
        except (ClientError, BotoCoreError) as e:
            logger.warning("Failed to update STS token in SSM (check permissions): %s", e)
            return False
        return True

    # azure

    def _acquire_azure(self, client: str, account: str) -> ProviderCredentials:
        logger.info("Starting Azure authentication...")
        path = CREDENTIALS_PATH.format(client=client, provider="azure", account=account)
        raw = self._read(path)
        if not raw:
            raise MissingSecret(path)
        env = normalize_azure_secret(raw)

        result = self._exec([
            "az", "login", "--service-principal",
            "-u", env["AZURE_CLIENT_ID"],
            "-p", env["AZURE_CLIENT_SECRET"],
            "--tenant", env["AZURE_TENANT_ID"],
        ])
        if result.returncode != 0:
            raise AuthError("Azure authentication failed.")
        logger.info("Azure authentication completed.")
        return ProviderCredentials(CloudProvider.AZURE, env)

    # gcp

    def _acquire_gcp(self, client: str, account: str) -> ProviderCredentials:
        logger.info("Starting GCP authentication...")
        base = f"/clients/{client}/gcp"
        try:
            path = self.store.find_first(base, f"{base}/{account}/", CREDENTIALS_SUFFIX)
        except (ClientError, BotoCoreError) as e:
            logger.error("Could not list %s: %s", base, e)
            path = None
        if not path:
            raise MissingSecret(CREDENTIALS_PATH.format(client=client, provider="gcp", account=account))
        raw = self._read(path)
        if not raw:
            raise MissingSecret(path)
        key = normalize_service_account_key(raw)

        fd, key_file = tempfile.mkstemp(prefix=f"gcp-{account}-", suffix=".json", dir=self.key_dir)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(key, fh)
            self._activate_gcp(key_file, account)
        finally:
            remove_quietly(key_file)
        logger.info("GCP authentication completed.")
        return ProviderCredentials(CloudProvider.GCP, {"CLOUDSDK_CORE_PROJECT": account})

    def _activate_gcp(self, key_file: str, project: str) -> None:
        result = self._exec(["gcloud", "auth", "activate-service-account", f"--key-file={key_file}", "--quiet"])
        if result.returncode != 0:
            raise AuthError("GCP authentication failed.")
        result = self._exec(["gcloud", "config", "set", "project", project, "--quiet"])
        if result.returncode != 0:
            raise AuthError(f"Could not select GCP project {project}.")


def remove_quietly(path: str) -> None:
    """
    Delete a file; an already missing file is not an error.
    """
    with contextlib.suppress(FileNotFoundError):
        os.remove(path)
