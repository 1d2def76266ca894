"""Pull code artifacts and JSON payloads out of model text."""

from __future__ import annotations

import json
import re

from .steps import CodeArtifact

CODE_BLOCK_RE = re.compile(r"```([^\n`]*)\n(.*?)```", re.DOTALL)
JSON_BLOCK_RE = re.compile(r"```(?:json)?\s*\n(.*?)```", re.DOTALL)

LANGUAGE_EXTENSIONS = {
    "python": "py",
    "py": "py",
    "json": "json",
    "yaml": "yml",
    "yml": "yml",
    "toml": "toml",
    "sql": "sql",
    "bash": "sh",
    "sh": "sh",
    "javascript": "js",
    "typescript": "ts",
    "markdown": "md",
}


def language_extension(language: str) -> str:
    return LANGUAGE_EXTENSIONS.get(language.lower(), "txt")


def extract_code_artifacts(text: str) -> list[CodeArtifact]:
    """Turn fenced code blocks into artifacts.

    The info string may carry a filename after the language
    (```` ```python app/models.py ````); otherwise a name is generated.
    Untagged blocks are treated as Python.
    """
    artifacts: list[CodeArtifact] = []
    for index, match in enumerate(CODE_BLOCK_RE.finditer(text), start=1):
        info = match.group(1).split()
        language = info[0].lower() if info else "python"
        if len(info) > 1:
            filename = info[1]
        else:
            filename = f"generated_{index}.{language_extension(language)}"
        artifacts.append(
            CodeArtifact(filename=filename, language=language, content=match.group(2).strip())
        )
    return artifacts


def extract_json(text: str) -> str:
    """Best-effort JSON extraction: fenced block first, then outermost braces."""
    match = JSON_BLOCK_RE.search(text)
    if match:
        return match.group(1).strip()
    start = text.find("{")
    end = text.rfind("}")
    if start >= 0 and end > start:
        return text[start : end + 1]
    return text


def parse_json_object(text: str) -> dict:
    """Extract and decode a JSON object. Raises ``ValueError`` if there is none."""
    data = json.loads(extract_json(text))
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data
