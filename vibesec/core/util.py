import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from vibesec.core.errors import TransientInfraError


@dataclass
class CmdResult:
    exit_code: int
    stdout: str
    stderr: str


def run_cmd(cmd: Sequence[str], cwd: Path, timeout_sec: int = 60) -> CmdResult:
    try:
        p = subprocess.run(
            list(cmd),
            cwd=str(cwd),
            capture_output=True,
            text=True,
            timeout=timeout_sec,
        )
    except subprocess.TimeoutExpired as e:
        raise TransientInfraError(f"{cmd[0]} timed out after {timeout_sec}s") from e
    return CmdResult(p.returncode, p.stdout or "", p.stderr or "")
