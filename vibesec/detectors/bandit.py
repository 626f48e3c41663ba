from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path

from vibesec.core.config import settings
from vibesec.core.util import run_cmd
from vibesec.domain.models import Finding

from .base import Detector
from .util import get_rel_path, humanize, location

logger = logging.getLogger(__name__)

_SEVERITY = {"HIGH": "High", "MEDIUM": "Medium", "LOW": "Low"}


class BanditDetector(Detector):
    """Python security linter. Runs ``bandit -r . -f json`` over the tree."""

    def name(self) -> str:
        return "bandit"

    def run(self, working_dir: Path) -> list[Finding]:
        # graceful handling if bandit CLI missing
        if shutil.which("bandit") is None:
            logger.warning("bandit not installed, skipping")
            return []

        # exit code 1 just means "issues found"
        r = run_cmd(
            ["bandit", "-r", ".", "-f", "json", "-q"],
            cwd=working_dir,
            timeout_sec=int(settings.DETECTOR_TIMEOUT),
        )
        return parse_bandit_output(r.stdout, working_dir)


def parse_bandit_output(text: str, working_dir: Path) -> list[Finding]:
    try:
        data = json.loads(text or "{}")
    except json.JSONDecodeError:
        logger.warning("bandit produced unparseable output (%d bytes)", len(text or ""))
        return []

    out: list[Finding] = []
    for r in data.get("results") or []:
        file_rel = get_rel_path(working_dir, str(r.get("filename") or ""))
        line = r.get("line_number")
        line_int = int(line) if line else None

        sev = (r.get("issue_severity") or "LOW").upper()
        rule = r.get("test_name") or r.get("test_id") or "bandit finding"
        msg = r.get("issue_text") or "Bandit finding"
        test_id = r.get("test_id")

        out.append(
            Finding(
                title=humanize(str(rule)),
                severity=_SEVERITY.get(sev, "Low"),
                description=f"{msg} ({test_id})" if test_id else msg,
                location=location(file_rel, line_int),
                file_path=file_rel or None,
                line_number=line_int,
                detector="bandit",
            )
        )
    return out
