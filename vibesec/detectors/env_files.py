from __future__ import annotations

import logging
import os
from pathlib import Path

from vibesec.domain.models import Finding

from .base import Detector

logger = logging.getLogger(__name__)

EXCLUDE_DIRS = {"node_modules", ".git", "dist", "build", "vendor", "venv", ".venv", "__pycache__", ".next"}
# Templates meant to be committed
ALLOWED = {".env.example", ".env.sample", ".env.template"}


class EnvFileDetector(Detector):
    """Flags committed dotenv files (``.env``, ``.env.production`` ...)."""

    def name(self) -> str:
        return "env-files"

    def run(self, working_dir: Path) -> list[Finding]:
        out: list[Finding] = []
        for root, dirs, files in os.walk(working_dir):
            dirs[:] = sorted(d for d in dirs if d not in EXCLUDE_DIRS)
            for fname in sorted(files):
                if not (fname == ".env" or fname.startswith(".env.")) or fname in ALLOWED:
                    continue
                rel = (Path(root) / fname).relative_to(working_dir).as_posix()
                out.append(
                    Finding(
                        title="Committed Environment File",
                        severity="High",
                        description=(
                            f"{rel} is tracked in the repository. Environment files usually hold "
                            "credentials; remove it, rotate its secrets and add it to .gitignore."
                        ),
                        location=rel,
                        file_path=rel,
                        detector="env-files",
                    )
                )
        if out:
            logger.info("Found %d committed env file(s)", len(out))
        return out
