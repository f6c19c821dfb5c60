# assessment/uploader.py
"""
Upload scanner artifacts to S3 under the operator's identity.

The scanned account's credentials are unset before any AWS call is made, so
the upload session resolves the operator's own baseline identity.
"""

import logging
import os
from typing import Callable, Optional

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError

from config import UPLOAD_ACL
from models import ProviderCredentials, RemoteArtifactPath, UploadOutcome

logger = logging.getLogger("mcsp_runner.uploader")

_UPLOAD_ERRORS = (ClientError, BotoCoreError, S3UploadFailedError, OSError)


def caller_identity(session) -> Optional[str]:
    """
    ARN of the identity the session resolves to, or None if it cannot be read.
    """
    try:
        return session.client("sts").get_caller_identity().get("Arn")
    except (ClientError, BotoCoreError) as e:
        logger.warning("Could not resolve active identity: %s", e)
        return None


class ArtifactUploader:
    def __init__(self, region: Optional[str] = None, session_factory: Optional[Callable[..., object]] = None):
        self.region = region
        self.session_factory = session_factory or boto3.Session

    def upload(self, output_dir: str, remote: RemoteArtifactPath, credentials: Optional[ProviderCredentials] = None) -> UploadOutcome:
        """
        Recursively copy output_dir to the remote prefix. Failures are returned, not raised.
        """
        logger.info("Reverting credentials for S3 upload...")
        if credentials is not None:
            credentials.clear()

        # Built after clearing so it never sees the scanned identity
        session = self.session_factory(region_name=self.region)
        identity = caller_identity(session)
        logger.info("Active identity for upload: %s", identity or "unknown")

        logger.info("Uploading reports to %s", remote.uri)
        uploaded = 0
        try:
            s3 = session.client("s3")
            for dirpath, _dirnames, filenames in os.walk(output_dir):
                for name in sorted(filenames):
                    local = os.path.join(dirpath, name)
                    rel = os.path.relpath(local, output_dir).replace(os.sep, "/")
                    s3.upload_file(local, remote.bucket, remote.prefix + rel, ExtraArgs={"ACL": UPLOAD_ACL})
                    uploaded += 1
        except _UPLOAD_ERRORS as e:
            logger.warning("Upload to S3 failed. Check permissions. (%s)", e)
            return UploadOutcome(success=False, uploaded=uploaded, operator_identity=identity, error=str(e))

        logger.info("Reports successfully uploaded to %s (%d objects)", remote.uri, uploaded)
        return UploadOutcome(success=True, uploaded=uploaded, operator_identity=identity)
