"""
Central configuration and tunable constants.

- Defaults can be overridden by environment variables, and those by CLI args.
- Secret store paths and scanner arguments are centralized here for easy tuning.
"""

import os
import tempfile
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

VERSION = "4.2.3"

DEFAULT_AWS_REGION = "us-east-1"
DEFAULT_S3_BUCKET = "agentic-mcsp-assessments"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_SCANNER_BIN = "prowler"

# Placeholders used when the positional inputs are omitted
UNKNOWN = "unknown"
UNDEFINED = "undefined"

# STS session lifetime for the assumed role
ASSUME_ROLE_DURATION_SECONDS = 3600
ROLE_SESSION_PREFIX = "AgenticMCSP"

UPLOAD_ACL = "bucket-owner-full-control"

ROLE_PATH = "/clients/{client}/{provider}/{account}/role"
CREDENTIALS_PATH = "/clients/{client}/{provider}/{account}/credentials/access"
CREDENTIALS_SUFFIX = "/credentials/access"

OUTPUT_FORMATS = ["csv", "html", "json-asff"]
OUTPUT_FILENAME = "agentic-mcsp-{provider}-{account}.json"
SUMMARY_FILENAME = "execution-summary.json"

COMPLIANCE_FRAMEWORKS: Dict[str, List[str]] = {
    "aws": [
        "aws_well_architected_framework_reliability_pillar_aws",
        "aws_well_architected_framework_security_pillar_aws",
        "iso27001_2022_aws",
        "mitre_attack_aws",
        "nist_800_53_revision_5_aws",
        "prowler_threatscore_aws",
        "soc2_aws",
    ],
    "azure": [
        "cis_4.0_azure",
        "iso27001_2022_azure",
        "mitre_attack_azure",
        "prowler_threatscore_azure",
        "soc2_azure",
    ],
    "gcp": [
        "cis_4.0_gcp",
        "iso27001_2022_gcp",
        "mitre_attack_gcp",
        "prowler_threatscore_gcp",
        "soc2_gcp",
    ],
}

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class Settings:
    """
    Runtime knobs for one runner invocation.

    Resolution order: explicit override -> environment -> module default.
    """
    region: str = DEFAULT_AWS_REGION
    bucket: str = DEFAULT_S3_BUCKET
    log_level: str = DEFAULT_LOG_LEVEL
    dry_run: bool = False
    scanner_bin: str = DEFAULT_SCANNER_BIN
    output_root: str = field(default_factory=tempfile.gettempdir)


def parse_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in _TRUTHY


def load_settings(env: Optional[Mapping[str, str]] = None, **overrides) -> Settings:
    """
    Build Settings from the environment; non-None keyword overrides win.
    """
    env = os.environ if env is None else env
    settings = Settings(
        region=env.get("AWS_REGION") or DEFAULT_AWS_REGION,
        bucket=env.get("S3_BUCKET") or DEFAULT_S3_BUCKET,
        log_level=(env.get("LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper(),
        dry_run=parse_bool(env.get("DRY_RUN")),
        scanner_bin=env.get("SCANNER_BIN") or DEFAULT_SCANNER_BIN,
        output_root=env.get("OUTPUT_ROOT") or tempfile.gettempdir(),
    )
    for key, value in overrides.items():
        if value is None:
            continue
        if not hasattr(settings, key):
            raise TypeError(f"Unknown setting: {key}")
        setattr(settings, key, value)
    settings.log_level = settings.log_level.upper()
    return settings
