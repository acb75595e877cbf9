"""Markdown report builder — renders an AnalysisReport to a Markdown document."""

from __future__ import annotations

import re

from codeclarity.schemas.analysis import AnalysisReport
from codeclarity.schemas.contracts import Language

# Fence info strings for syntax highlighting
FENCE_TAGS: dict[Language, str] = {
    Language.CPP: "cpp",
    Language.PYTHON: "python",
    Language.JAVASCRIPT: "javascript",
}


def _fenced(text: str, tag: str = "") -> str:
    # Fence must be longer than any backtick run inside the text
    longest = max((len(run) for run in re.findall(r"`+", text)), default=0)
    fence = "`" * max(3, longest + 1)
    return f"{fence}{tag}\n{text.rstrip()}\n{fence}\n"


def render_markdown_report(report: AnalysisReport) -> str:
    """Render an AnalysisReport into a Markdown string."""
    tag = FENCE_TAGS.get(report.language, "")
    result = report.result
    sections: list[str] = []

    sections.append("# CodeClarity Analysis Report\n")
    sections.append(f"*Generated: {report.generated_at}*\n")
    sections.append(f"- **Language:** {report.language.value}")
    if report.model:
        sections.append(f"- **Model:** {report.model}")
    sections.append("")

    sections.append("## Source Code\n")
    sections.append(_fenced(report.code, tag))

    sections.append("## 1. Documentation\n")
    sections.append(result.documentation.strip() + "\n")

    sections.append("## 2. Refactoring Suggestions\n")
    if result.refactorings:
        for suggestion in result.refactorings:
            sections.append(f"- {suggestion}")
    else:
        sections.append("*No refactoring suggestions.*")
    sections.append("")

    sections.append("## 3. Complexity Analysis\n")
    sections.append(result.complexity.strip() + "\n")

    sections.append("## 4. Unit Tests\n")
    sections.append(_fenced(result.unit_tests, tag))

    return "\n".join(sections)
