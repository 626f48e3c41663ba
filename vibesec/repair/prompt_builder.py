"""Build the structured-patch prompt for a single finding.

The model must answer with one JSON object: a summary plus per-file
changes, either line edits against an existing file or the full content
of a new file.
"""

from __future__ import annotations

import re

from vibesec.domain.models import Finding

SYSTEM_PROMPT = """\
You are a Senior Cybersecurity Expert.
Fix the reported vulnerability with minimal, precise changes.

Rules:
1. Preserve external behavior unless the vulnerability requires changing it.
2. Remove hardcoded secrets and read them from environment variables instead (never print secrets).
3. Only include files that need to be changed or created.
4. Be precise with line numbers: they refer to the file content as shown.
5. Return ONLY valid JSON, no markdown formatting, no explanations.
"""

RESPONSE_FORMAT = """\
{
  "summary": "Brief explanation of the fix (2-3 sentences)",
  "files": [
    {
      "filePath": "path/to/file.js",
      "isNewFile": false,
      "changes": [
        {"lineNumber": 10, "type": "removed", "content": "const apiKey = 'hardcoded-key';"},
        {"lineNumber": 10, "type": "added", "content": "const apiKey = process.env.API_KEY;"}
      ]
    },
    {
      "filePath": "new-security-config.js",
      "isNewFile": true,
      "fullContent": "// Complete file content here\\nconst config = {};"
    }
  ]
}"""

# file-looking tokens inside a free-form location string, e.g. "src/db.ts:42"
_LOCATION_FILE = re.compile(
    r"([^\s:]+\.(?:js|ts|jsx|tsx|py|java|php|rb|go|cs|cpp|c|json|yaml|yml|env|config|conf|toml|ini))"
)


def relevant_paths(finding: Finding) -> list[str]:
    """Files whose content should go into the prompt, most specific first."""
    paths: list[str] = []
    if finding.file_path:
        paths.append(finding.file_path)

    m = _LOCATION_FILE.search(finding.location or "")
    if m and m.group(1) not in paths:
        paths.append(m.group(1))
    return paths


def build_fix_prompt(finding: Finding, tech_stack: list[str], files: dict[str, str]) -> str:
    stack = ", ".join(tech_stack) if tech_stack else "unknown"

    file_blocks = []
    for path, content in files.items():
        numbered = "\n".join(f"{i:>5}: {line}" for i, line in enumerate(content.split("\n"), start=1))
        file_blocks.append(f"File: {path}\n```\n{numbered}\n```")

    parts = [
        f"A vulnerability has been detected in a {stack} application.\n",
        "## Vulnerability details\n",
        f"- **Title:** {finding.title}",
        f"- **Severity:** {finding.severity}",
        f"- **Description:** {finding.description}",
        f"- **Location:** {finding.location}",
        "\n## Relevant codebase files (line numbers prefixed, not part of the content)\n",
        "\n\n".join(file_blocks) if file_blocks else "(no file content available)",
        "\n## Task",
        "Generate a fix for this vulnerability. Respond with a JSON object in exactly this format:\n",
        RESPONSE_FORMAT,
        "\nIMPORTANT:",
        '- For modified files: list each line change with type "removed", "added" or "modified" '
        "and the exact line number",
        "- For new files: set isNewFile to true and provide fullContent with the complete file content",
        "- Use \\n for newlines in fullContent",
    ]
    return "\n".join(parts)
