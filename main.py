# main.py
"""
CLI entrypoint for the multi-cloud assessment runner.

- Default mode: main.py [client] [provider] [account]
  authenticates, runs the compliance scanner and uploads the reports to S3.
- Inspection mode: main.py inspect <provider>
  prints the detected scanner syntax and the compliance frameworks, no auth or scan.
- Exit codes: 0 on completion (partial scan/upload failures included), dry run
  and inspection; 1 on authentication failure or missing scanner.
"""

import argparse
import logging
import os
import shutil
import sys
from typing import List, Mapping, Optional

from assessment.compat import CompatibilityProbe, syntax_tokens
from assessment.errors import DryRunRequested
from assessment.invoker import format_command
from assessment.orchestrator import Orchestrator
from config import COMPLIANCE_FRAMEWORKS, UNDEFINED, UNKNOWN, Settings, load_settings
from models import CloudProvider, Session
from utils import bind_session, configure_logging, print_summary

logger = logging.getLogger("mcsp_runner")

INSPECT = "inspect"


def scanner_available(scanner_bin: str) -> bool:
    return shutil.which(scanner_bin) is not None


def resolve_inputs(args, env: Mapping[str, str]):
    """
    Positional args win, then CLIENT_NAME / CLOUD_PROVIDER / ACCOUNT_ID, then placeholders.
    """
    client = args.client or env.get("CLIENT_NAME") or UNKNOWN
    provider = (args.provider or env.get("CLOUD_PROVIDER") or UNKNOWN).strip().lower()
    account = args.account or env.get("ACCOUNT_ID") or UNDEFINED
    return client, provider, account


def run_inspect(provider_tag: str, settings: Settings, probe: Optional[CompatibilityProbe] = None) -> int:
    """
    Print the syntax the installed scanner accepts and the frameworks used for provider.
    """
    try:
        provider = CloudProvider.parse(provider_tag)
    except ValueError:
        logger.error("Cloud Service Provider invalid: %s", provider_tag)
        return 1
    probe = probe or CompatibilityProbe(settings.scanner_bin)
    syntax = probe.detect(provider.value)
    tokens = " ".join(syntax_tokens(syntax)) or "(no output-format flags)"
    print(f"Provider: {provider.value}")
    print(f"Syntax:   {syntax.value} {tokens}")
    print("Compliance frameworks:")
    for framework in COMPLIANCE_FRAMEWORKS[provider.value]:
        print(f"  - {framework}")
    return 0


def run_assessment(client: str, provider: str, account: str, settings: Settings) -> int:
    session = Session.create(client, provider, account, settings.output_root)
    bind_session(session)

    if not scanner_available(settings.scanner_bin):
        logger.error("Scanner not found or without execution permission: %s", settings.scanner_bin)
        return 1

    try:
        summary = Orchestrator(session, settings).run()
    except DryRunRequested as e:
        print(format_command(e.command))
        return 0
    print_summary(summary)
    return summary.exit_code


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="Multi-cloud compliance assessment runner (AWS, Azure, GCP)."
    )
    p.add_argument("client", nargs="?", help="Client name (default: unknown)")
    p.add_argument("provider", nargs="?", help="Cloud provider: aws, azure or gcp")
    p.add_argument("account", nargs="?", help="Account / subscription / project id (default: undefined)")
    p.add_argument("--region", help="AWS region for SSM, STS and S3 (env AWS_REGION)")
    p.add_argument("--bucket", help="Destination S3 bucket (env S3_BUCKET)")
    p.add_argument("--log-level", help="Scanner and runner log level (env LOG_LEVEL)")
    p.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Print the scanner command and exit without running anything (env DRY_RUN)",
    )
    return p


def build_inspect_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="main.py inspect",
        description="Show the scanner syntax and compliance frameworks for a provider.",
    )
    p.add_argument("provider", help="Cloud provider: aws, azure or gcp")
    return p


def main(argv: Optional[List[str]] = None, env: Optional[Mapping[str, str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    env = os.environ if env is None else env

    if argv and argv[0] == INSPECT:
        args = build_inspect_parser().parse_args(argv[1:])
        settings = load_settings(env)
        configure_logging(settings.log_level)
        return run_inspect(args.provider, settings)

    args = build_parser().parse_args(argv)
    settings = load_settings(
        env,
        region=args.region,
        bucket=args.bucket,
        log_level=args.log_level,
        dry_run=args.dry_run,
    )
    configure_logging(settings.log_level)
    client, provider, account = resolve_inputs(args, env)
    return run_assessment(client, provider, account, settings)


if __name__ == "__main__":
    raise SystemExit(main())
