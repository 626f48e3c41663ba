from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path

from vibesec.core.config import settings
from vibesec.core.util import run_cmd
from vibesec.domain.models import Finding

from .base import Detector
from .util import get_rel_path, location

logger = logging.getLogger(__name__)


class TruffleHogDetector(Detector):
    """Secret scanner. Verified secrets are Critical, unverified High."""

    def name(self) -> str:
        return "trufflehog"

    def run(self, working_dir: Path) -> list[Finding]:
        if shutil.which("trufflehog") is None:
            logger.warning("trufflehog not installed, skipping")
            return []

        # TruffleHog prints one JSON object per line to stdout with --json
        r = run_cmd(
            ["trufflehog", "filesystem", ".", "--json", "--no-update"],
            cwd=working_dir,
            timeout_sec=int(settings.DETECTOR_TIMEOUT),
        )
        return parse_trufflehog_output(r.stdout, working_dir)


def parse_trufflehog_output(text: str, working_dir: Path) -> list[Finding]:
    out: list[Finding] = []
    for line in (text or "").splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            it = json.loads(line)
        except json.JSONDecodeError:
            # trufflehog interleaves plain log lines
            continue

        # Extract file path from nested SourceMetadata
        source = (it.get("SourceMetadata") or {}).get("Data") or {}
        fs = source.get("Filesystem") or {}
        file_rel = get_rel_path(working_dir, fs.get("file") or "")
        line_no = fs.get("line")
        line_int = int(line_no) if line_no else None

        detector = it.get("DetectorName") or "Unknown"
        verified = bool(it.get("Verified"))
        status = "verified" if verified else "unverified"

        out.append(
            Finding(
                title="Exposed Secret",
                severity="Critical" if verified else "High",
                # never echo the secret itself
                description=f"{detector} credential committed to the repository ({status}).",
                location=location(file_rel, line_int),
                file_path=file_rel or None,
                line_number=line_int,
                detector="trufflehog",
            )
        )
    return out
