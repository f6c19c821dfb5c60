# assessment/invoker.py
"""
Scanner invocation with a single syntax fallback.

- The command is an argv list; nothing is shell-evaluated.
- A failed attempt is retried exactly once with the alternate output syntax.
- A failed retry is a partial failure: logged, never raised.
"""

import logging
import shlex
import subprocess
from typing import Callable, List, Optional

from config import COMPLIANCE_FRAMEWORKS, DEFAULT_LOG_LEVEL, DEFAULT_SCANNER_BIN, OUTPUT_FILENAME
from models import CloudProvider, OutputSyntax, ScanAttempt, ScanOutcome, ScanResult
from assessment.compat import CompatibilityProbe, syntax_tokens
from assessment.errors import DryRunRequested

logger = logging.getLogger("mcsp_runner.invoker")

# Return code recorded when the scanner cannot be executed at all
EXEC_FAILED = 127


def scan_arguments(provider: CloudProvider, account: str) -> List[str]:
    """
    Provider-specific flags plus the compliance frameworks evaluated for it.
    """
    frameworks = ["--compliance", *COMPLIANCE_FRAMEWORKS[provider.value]]
    if provider is CloudProvider.AZURE:
        return ["--sp-env-auth", *frameworks]
    if provider is CloudProvider.GCP:
        return ["--project-id", account, "--skip-api-check", *frameworks]
    return frameworks


def output_filename(provider: str, account: str) -> str:
    return OUTPUT_FILENAME.format(provider=provider, account=account)


def format_command(command: List[str]) -> str:
    return " ".join(shlex.quote(part) for part in command)


class ScanInvoker:
    def __init__(
        self,
        probe: Optional[CompatibilityProbe] = None,
        scanner_bin: str = DEFAULT_SCANNER_BIN,
        log_level: str = DEFAULT_LOG_LEVEL,
        dry_run: bool = False,
        run: Optional[Callable[..., subprocess.CompletedProcess]] = None,
    ):
        self.scanner_bin = scanner_bin
        self.probe = probe or CompatibilityProbe(scanner_bin)
        self.log_level = log_level
        self.dry_run = dry_run
        self.runner = run or subprocess.run

    def build_command(
        self, provider: str, syntax: OutputSyntax, output_dir: str, filename: str, extra_args: List[str]
    ) -> List[str]:
        return [
            self.scanner_bin,
            provider,
            *syntax_tokens(syntax),
            *extra_args,
            "--output-filename", filename,
            "--output-directory", output_dir,
            "--no-banner",
            "--log-level", self.log_level,
        ]

    def _attempt(self, command: List[str]) -> int:
        logger.info("Executing: %s", format_command(command))
        try:
            return self.runner(command).returncode
        except OSError as e:
            logger.warning("Could not execute %s: %s", command[0], e)
            return EXEC_FAILED

    def run(self, provider: str, output_dir: str, filename: str, extra_args: List[str]) -> ScanResult:
        """
        Probe, build and execute the scan. Raises DryRunRequested in dry-run mode.
        """
        self.probe.version()
        syntax = self.probe.detect(provider)
        command = self.build_command(provider, syntax, output_dir, filename, extra_args)

        if self.dry_run:
            logger.info("Dry run, not executing: %s", format_command(command))
            raise DryRunRequested(command)

        attempts = [ScanAttempt(syntax, command, self._attempt(command))]
        if attempts[0].returncode == 0:
            return ScanResult(ScanOutcome.SUCCESS, attempts)

        fallback = syntax.alternate()
        logger.warning("Primary syntax failed (exit %s). Retrying with %s syntax...", attempts[0].returncode, fallback.value)
        retry = self.build_command(provider, fallback, output_dir, filename, extra_args)
        attempts.append(ScanAttempt(fallback, retry, self._attempt(retry)))
        if attempts[1].returncode == 0:
            return ScanResult(ScanOutcome.SUCCESS, attempts)

        logger.warning("Partial failure in fallback mode (%s).", " ".join(syntax_tokens(fallback)[:1]))
        return ScanResult(ScanOutcome.PARTIAL_FAILURE, attempts)
