from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from vibesec.domain.models import Finding


class Detector(ABC):
    """One security check over a cloned working tree.

    ``run`` is blocking; the pipeline calls it from a worker thread with a
    timeout. A detector whose CLI tool is missing returns no findings.
    """

    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def run(self, working_dir: Path) -> list[Finding]: ...
