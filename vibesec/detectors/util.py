from pathlib import Path


def get_rel_path(workspace: Path, filename: str) -> str:
    """
    Convert a tool-reported filename to a workspace-relative posix path.

    Handles three cases:
    1. Absolute path inside workspace  → strip workspace prefix
    2. Relative path with ./           → strip leading ./
    3. Absolute path elsewhere         → basename as best effort
    """
    if not filename:
        return ""

    s = filename.replace("\\", "/")
    if s.startswith("./"):
        s = s[2:]

    p = Path(s)
    if p.is_absolute():
        try:
            return p.resolve().relative_to(workspace.resolve()).as_posix()
        except ValueError:
            return p.name

    return p.as_posix()


def location(file_rel: str, line: int | None) -> str:
    return f"{file_rel}:{line}" if line else file_rel


def humanize(rule_name: str) -> str:
    """``hardcoded_password_string`` -> ``Hardcoded Password String``"""
    return " ".join(w.capitalize() for w in rule_name.replace("-", "_").split("_") if w)
