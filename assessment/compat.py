# assessment/compat.py
"""
Scanner compatibility probe.

The scanner changed its output-format flag across releases. The probe reads the
provider subcommand's help text and picks the syntax the installed version accepts.
"""

import logging
import re
import subprocess
from typing import Callable, List, Optional

from config import DEFAULT_SCANNER_BIN, OUTPUT_FORMATS
from models import OutputSyntax

logger = logging.getLogger("mcsp_runner.compat")

MODERN_MARKER = re.compile(r"(?<![\w-])-M\b")
LEGACY_MARKER = "--output-formats"


def syntax_tokens(syntax: OutputSyntax) -> List[str]:
    if syntax is OutputSyntax.MODERN:
        return ["-M", *OUTPUT_FORMATS]
    if syntax is OutputSyntax.LEGACY:
        return [LEGACY_MARKER, *OUTPUT_FORMATS]
    return []


def choose_syntax(help_text: str) -> OutputSyntax:
    if MODERN_MARKER.search(help_text or ""):
        return OutputSyntax.MODERN
    if LEGACY_MARKER in (help_text or ""):
        return OutputSyntax.LEGACY
    return OutputSyntax.NONE


class CompatibilityProbe:
    def __init__(self, scanner_bin: str = DEFAULT_SCANNER_BIN, run: Optional[Callable[..., subprocess.CompletedProcess]] = None):
        self.scanner_bin = scanner_bin
        self.run = run or subprocess.run

    def _capture(self, args: List[str]) -> str:
        # Exit status is ignored; only the text matters
        try:
            result = self.run(args, capture_output=True, text=True)
        except OSError as e:
            logger.warning("Could not execute %s: %s", args[0], e)
            return ""
        return (result.stdout or "") + (result.stderr or "")

    def version(self) -> str:
        lines = self._capture([self.scanner_bin, "--version"]).strip().splitlines()
        version = lines[0].strip() if lines else "unknown"
        logger.info("Detected Prowler version: %s", version)
        return version

    def detect(self, provider: str) -> OutputSyntax:
        """
        Probe `<scanner> <provider> -h`. Never raises; re-probes on every call.
        """
        syntax = choose_syntax(self._capture([self.scanner_bin, provider, "-h"]))
        if syntax is OutputSyntax.NONE:
            logger.warning("No compatible output flag found. Running without explicit formats.")
        else:
            logger.info("Using %s syntax: '%s'", syntax.value, " ".join(syntax_tokens(syntax)))
        return syntax
