import json
from pathlib import Path

import pytest

from vibesec.detectors.bandit import BanditDetector, parse_bandit_output
from vibesec.detectors.env_files import EnvFileDetector
from vibesec.detectors.registry import DetectorRegistry
from vibesec.detectors.stack import detect_tech_stack
from vibesec.detectors.trufflehog import TruffleHogDetector, parse_trufflehog_output
from vibesec.detectors.util import get_rel_path, humanize



def test_parse_bandit_output(tmp_path):
    payload = {
        "results": [
            {
                "filename": str(tmp_path / "app" / "db.py"),
                "line_number": 12,
                "issue_severity": "HIGH",
                "issue_text": "Possible SQL injection vector through string-based query construction.",
                "test_id": "B608",
                "test_name": "hardcoded_sql_expressions",
            },
            {
                "filename": "./settings.py",
                "line_number": 3,
                "issue_severity": "LOW",
                "issue_text": "Possible hardcoded password: 'hunter2'",
                "test_id": "B105",
                "test_name": "hardcoded_password_string",
            },
        ]
    }

    findings = parse_bandit_output(json.dumps(payload), tmp_path)

    assert [f.severity for f in findings] == ["High", "Low"]
    first = findings[0]
    assert first.title == "Hardcoded Sql Expressions"
    assert first.file_path == "app/db.py"
    assert first.location == "app/db.py:12"
    assert first.description.endswith("(B608)")
    assert findings[1].file_path == "settings.py"
    assert all(f.detector == "bandit" for f in findings)


def test_parse_bandit_garbage_is_empty(tmp_path):
    assert parse_bandit_output("Traceback (most recent call last):", tmp_path) == []
    assert parse_bandit_output("", tmp_path) == []


def test_parse_trufflehog_output(tmp_path):
    lines = [
        json.dumps(
            {
                "DetectorName": "AWS",
                "Verified": True,
                "Raw": "AKIA...",
                "SourceMetadata": {"Data": {"Filesystem": {"file": str(tmp_path / "config.js"), "line": 4}}},
            }
        ),
        "info: scanning filesystem",
        json.dumps(
            {
                "DetectorName": "Stripe",
                "Verified": False,
                "SourceMetadata": {"Data": {"Filesystem": {"file": "src/pay.ts"}}},
            }
        ),
    ]

    findings = parse_trufflehog_output("\n".join(lines), tmp_path)

    assert [(f.severity, f.location) for f in findings] == [("Critical", "config.js:4"), ("High", "src/pay.ts")]
    assert all(f.title == "Exposed Secret" for f in findings)
    assert "AKIA" not in findings[0].description
    assert "unverified" in findings[1].description


def test_missing_tools_are_skipped(tmp_path, monkeypatch):
    monkeypatch.setattr("vibesec.detectors.bandit.shutil.which", lambda _: None)
    monkeypatch.setattr("vibesec.detectors.trufflehog.shutil.which", lambda _: None)
    assert BanditDetector().run(tmp_path) == []
    assert TruffleHogDetector().run(tmp_path) == []


def test_env_file_detector(tmp_path):
    (tmp_path / ".env").write_text("SECRET=1")
    (tmp_path / ".env.example").write_text("SECRET=")
    (tmp_path / "api").mkdir()
    (tmp_path / "api" / ".env.production").write_text("DB=postgres://")
    (tmp_path / "node_modules" / "pkg").mkdir(parents=True)
    (tmp_path / "node_modules" / "pkg" / ".env").write_text("X=1")

    findings = EnvFileDetector().run(tmp_path)

    assert sorted(f.file_path for f in findings) == [".env", "api/.env.production"]
    assert all(f.severity == "High" for f in findings)


def test_registry_keeps_order_and_rejects_duplicates():
    reg = DetectorRegistry([EnvFileDetector(), BanditDetector()])
    assert reg.list() == ["env-files", "bandit"]
    assert isinstance(reg.get("bandit"), BanditDetector)
    with pytest.raises(KeyError):
        reg.get("semgrep")
    with pytest.raises(ValueError):
        DetectorRegistry([BanditDetector(), BanditDetector()])


def test_detect_tech_stack(tmp_path):
    (tmp_path / "package.json").write_text(
        json.dumps({"dependencies": {"next": "14.0.0", "react": "18"}, "devDependencies": {"prisma": "5"}})
    )
    (tmp_path / "tsconfig.json").write_text("{}")
    (tmp_path / "supabase").mkdir()

    assert detect_tech_stack(tmp_path) == ["Node.js", "Next.js", "React", "Prisma", "Supabase", "TypeScript"]


def test_detect_tech_stack_python_and_broken_package_json(tmp_path):
    (tmp_path / "pyproject.toml").write_text("[project]\nname='x'\n")
    (tmp_path / "package.json").write_text("{not json")
    assert detect_tech_stack(tmp_path) == ["Node.js", "Python"]
    assert detect_tech_stack(Path(tmp_path / "empty")) == []


def test_path_helpers(tmp_path):
    assert get_rel_path(tmp_path, str(tmp_path / "a" / "b.py")) == "a/b.py"
    assert get_rel_path(tmp_path, "/elsewhere/c.py") == "c.py"
    assert get_rel_path(tmp_path, "") == ""
    assert humanize("hardcoded-password_string") == "Hardcoded Password String"
