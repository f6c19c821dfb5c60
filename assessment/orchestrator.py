# assessment/orchestrator.py
"""
Session sequencing: authenticate, scan, upload, summarize.

Only a credential failure aborts the session. Scan and upload failures are
recorded in the summary and the session still exits 0.
"""

import logging
import os
import time
from typing import Optional

import boto3

from config import SUMMARY_FILENAME, VERSION, Settings
from models import (
    CloudProvider,
    ExecutionSummary,
    RemoteArtifactPath,
    ScanOutcome,
    ScanResult,
    Session,
)
from assessment.credentials import CredentialBroker
from assessment.errors import AssessmentError, UnsupportedProvider
from assessment.invoker import ScanInvoker, output_filename, scan_arguments
from assessment.uploader import ArtifactUploader
from utils import LOG_DATEFMT, write_summary

logger = logging.getLogger("mcsp_runner")


class Orchestrator:
    def __init__(
        self,
        session: Session,
        settings: Settings,
        broker: Optional[CredentialBroker] = None,
        invoker: Optional[ScanInvoker] = None,
        uploader: Optional[ArtifactUploader] = None,
    ):
        self.session = session
        self.settings = settings
        self._broker = broker
        self.invoker = invoker or ScanInvoker(
            scanner_bin=settings.scanner_bin,
            log_level=settings.log_level,
            dry_run=settings.dry_run,
        )
        self.invoker.dry_run = self.invoker.dry_run or settings.dry_run
        self.uploader = uploader or ArtifactUploader(region=settings.region)

    @property
    def broker(self) -> CredentialBroker:
        # Created lazily: a dry run never touches the secret store
        if self._broker is None:
            self._broker = CredentialBroker(
                boto3.Session(region_name=self.settings.region),
                session_name=self.session.session_id,
                region=self.settings.region,
            )
        return self._broker

    def _summary(self) -> ExecutionSummary:
        s = self.session
        return ExecutionSummary(
            session_id=s.session_id,
            client=s.client,
            provider=s.provider,
            account=s.account,
            region=self.settings.region,
            output_dir=s.output_dir,
            version=VERSION,
            started_at=s.started_at.strftime(LOG_DATEFMT),
        )

    def _scan(self, cloud: CloudProvider) -> ScanResult:
        s = self.session
        return self.invoker.run(
            cloud.value,
            s.output_dir,
            output_filename(cloud.value, s.account),
            scan_arguments(cloud, s.account),
        )

    def run(self) -> ExecutionSummary:
        """
        Run one session end to end. DryRunRequested propagates to the caller.
        """
        started = time.monotonic()
        summary = self._summary()
        logger.info(
            "Starting Multicloud Assessment Runner v%s (session %s, started %s)",
            VERSION, self.session.session_id, summary.started_at,
        )

        try:
            cloud = CloudProvider.parse(self.session.provider)
        except ValueError:
            return self._abort(summary, UnsupportedProvider(self.session.provider), started)

        if self.settings.dry_run:
            self._scan(cloud)

        try:
            credentials = self.broker.acquire(cloud.value, self.session.client, self.session.account)
        except AssessmentError as e:
            return self._abort(summary, e, started)

        try:
            summary.scan = self._scan(cloud)
        finally:
            credentials.clear()

        if summary.scan.outcome is not ScanOutcome.SUCCESS:
            logger.warning("Scan finished with %s; uploading partial artifacts.", summary.scan.outcome.value)

        summary.remote_path = RemoteArtifactPath.at_upload_time(self.settings.bucket, self.session)
        self._write_summary(summary)
        summary.upload = self.uploader.upload(self.session.output_dir, summary.remote_path, credentials)
        return self._finish(summary, started)

    def _write_summary(self, summary: ExecutionSummary) -> None:
        # Uploaded with the reports; the upload outcome is only in the log and console
        path = os.path.join(self.session.output_dir, SUMMARY_FILENAME)
        try:
            write_summary(summary, path)
        except OSError as e:
            logger.warning("Could not write %s: %s", path, e)

    def _abort(self, summary: ExecutionSummary, error: AssessmentError, started: float) -> ExecutionSummary:
        logger.error("%s", error)
        logger.error("Authentication failed. Aborting.")
        summary.scan = ScanResult(ScanOutcome.HARD_FAILURE)
        summary.error = str(error)
        summary.exit_code = 1
        return self._finish(summary, started)

    def _finish(self, summary: ExecutionSummary, started: float) -> ExecutionSummary:
        summary.duration_seconds = int(time.monotonic() - started)
        logger.info("Execution completed in %ss.", summary.duration_seconds)
        logger.info("========== EXECUTION SUMMARY ==========")
        logger.info("Session ID: %s", summary.session_id)
        logger.info("Started:    %s", summary.started_at)
        logger.info("Client:     %s", summary.client)
        logger.info("Cloud:      %s", summary.provider)
        logger.info("Account:    %s", summary.account)
        logger.info("Region:     %s", summary.region)
        logger.info("Output:     %s", summary.output_dir)
        logger.info("S3 Path:    %s", summary.remote_path.uri if summary.remote_path else "-")
        logger.info("Version:    %s", summary.version)
        logger.info("=======================================")
        return summary
