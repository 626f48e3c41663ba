"""Tech-stack fingerprinting from manifest files at the repository root."""

from __future__ import annotations

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

# package.json dependency -> stack label, in reporting order
_NODE_DEPS: list[tuple[tuple[str, ...], str]] = [
    (("next", "next.js"), "Next.js"),
    (("react",), "React"),
    (("@supabase/supabase-js", "@supabase/auth-helpers-nextjs"), "Supabase"),
    (("firebase", "firebase-admin"), "Firebase"),
    (("vercel",), "Vercel"),
    (("pg", "pg-native", "postgres"), "PostgreSQL"),
    (("mongodb", "mongoose"), "MongoDB"),
    (("prisma",), "Prisma"),
    (("sequelize",), "Sequelize"),
]

_MANIFESTS: list[tuple[tuple[str, ...], str]] = [
    (("requirements.txt", "pyproject.toml", "setup.py"), "Python"),
    (("go.mod",), "Go"),
    (("Cargo.toml",), "Rust"),
    (("pom.xml",), "Java"),
    (("composer.json",), "PHP"),
    (("Gemfile",), "Ruby"),
]


def _node_stack(package_json: Path) -> list[str]:
    try:
        pkg = json.loads(package_json.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Could not read package.json: %s", e)
        return []

    deps = {**(pkg.get("dependencies") or {}), **(pkg.get("devDependencies") or {})}
    return [label for names, label in _NODE_DEPS if any(n in deps for n in names)]


def detect_tech_stack(working_dir: Path) -> list[str]:
    stack: list[str] = []

    if (working_dir / "package.json").is_file():
        stack.append("Node.js")
        stack.extend(_node_stack(working_dir / "package.json"))

    for names, label in _MANIFESTS:
        if any((working_dir / n).exists() for n in names):
            stack.append(label)

    if (working_dir / "supabase").exists() and "Supabase" not in stack:
        stack.append("Supabase")

    if (working_dir / "tailwind.config.js").exists() or (working_dir / "tailwind.config.ts").exists():
        stack.append("Tailwind CSS")

    if (working_dir / "tsconfig.json").exists():
        stack.append("TypeScript")

    return stack
