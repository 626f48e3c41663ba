"""Error taxonomy shared by the scheduler, fix generator and patch applier.

Job-level errors end up on the job record (status/error) and are never
raised to the submitter. Request-level errors propagate to the API layer,
which maps ``http_status`` onto the response.
"""

from __future__ import annotations


class VibeSecError(Exception):
    http_status: int = 500
    retryable: bool = False

    def to_dict(self) -> dict:
        return {"error": type(self).__name__, "detail": str(self)}


class ValidationError(VibeSecError):
    """Malformed input, e.g. an unparseable repository reference."""

    http_status = 400


class NotFoundError(VibeSecError):
    http_status = 404


class TransientInfraError(VibeSecError):
    """Clone failure, timeout or other infrastructure hiccup."""

    http_status = 502
    retryable = True


class PermissionDeniedError(VibeSecError):
    """The access gate refused a mutation-causing operation."""

    http_status = 403


class GenerationError(VibeSecError):
    """A model call failed with a non-fallback error class (auth, budget...)."""

    http_status = 502


class ProviderExhaustedError(VibeSecError):
    """Every model in the fallback list was unavailable."""

    http_status = 503


class ParseError(VibeSecError):
    """Model output could not be decoded into a Patch, even after recovery."""

    http_status = 502


class PartialApplyError(VibeSecError):
    http_status = 409

    def __init__(self, branch_name: str, applied: list[str], failed: list[str], reason: str):
        self.branch_name = branch_name
        self.applied = applied
        self.failed = failed
        self.reason = reason
        super().__init__(
            f"Patch partially applied on {branch_name}: "
            f"{len(applied)} file(s) written, {len(failed)} not written ({reason})"
        )

    def to_dict(self) -> dict:
        d = super().to_dict()
        d.update({"branchName": self.branch_name, "applied": self.applied, "failed": self.failed})
        return d
