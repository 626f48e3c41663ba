from __future__ import annotations

from typing import Iterable

from .base import Detector


class DetectorRegistry:
    """Ordered, statically registered detectors. Run order = registration order."""

    def __init__(self, detectors: Iterable[Detector]):
        self._detectors = list(detectors)
        names = [d.name() for d in self._detectors]
        if len(names) != len(set(names)):
            raise ValueError(f"duplicate detector names: {names}")

    def list(self) -> list[str]:
        return [d.name() for d in self._detectors]

    def get(self, name: str) -> Detector:
        for d in self._detectors:
            if d.name() == name:
                return d
        raise KeyError(name)

    def ordered(self) -> list[Detector]:
        return list(self._detectors)
