"""Static HTML report — renders an AnalysisReport to a self-contained HTML file."""

from __future__ import annotations

from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from codeclarity.output.markdown import FENCE_TAGS
from codeclarity.schemas.analysis import AnalysisReport

_TEMPLATE_DIR = Path(__file__).parent / "templates"


def render_html_report(report: AnalysisReport) -> str:
    """Render an AnalysisReport into a standalone HTML page."""
    env = Environment(
        loader=FileSystemLoader(str(_TEMPLATE_DIR)),
        autoescape=select_autoescape(["html", "j2"]),
        keep_trailing_newline=True,
    )
    template = env.get_template("report.html.j2")
    return template.render(
        report=report,
        result=report.result,
        language=report.language.value,
        lang_class=FENCE_TAGS.get(report.language, ""),
    )
