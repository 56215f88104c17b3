"""CLI for diagnosing a manuscript's chapter order."""

from __future__ import annotations

import argparse
from pathlib import Path

from manuscript_engine.adapters.observability import configure_runtime_logging
from manuscript_engine.api.contracts import AnalysisResult
from manuscript_engine.api.python_interface import ManuscriptEngine
from manuscript_engine.domain.errors import DataIntegrityError


def build_arg_parser() -> argparse.ArgumentParser:
    """Define CLI flags for order analysis."""
    parser = argparse.ArgumentParser(
        description="Report consistency findings and a quality score for a chapter order."
    )
    parser.add_argument("--manuscript", required=True, help="Path to manuscript JSON.")
    parser.add_argument(
        "--order",
        default="",
        help="Comma-separated chapter ids to analyze. Defaults to the manuscript order.",
    )
    parser.add_argument("--format", choices=["text", "json"], default="text")
    return parser


def parse_order(raw: str) -> list[str] | None:
    """Split a comma-separated order; blank input means the manuscript order."""
    ids = [item.strip() for item in raw.split(",") if item.strip()]
    return ids or None


def load_engine(path: Path) -> ManuscriptEngine:
    try:
        return ManuscriptEngine.from_json(path)
    except (OSError, ValueError) as exc:
        raise SystemExit(f"Could not load manuscript {path}: {exc}") from exc


def render_text(result: AnalysisResult, *, title: str) -> str:
    report = result.report
    quality = result.quality
    lines = [
        f"Manuscript: {title or '(untitled)'}",
        f"Order: {', '.join(report.chapter_order) or '(empty)'}",
        f"Quality score: {quality.score}/100",
        (
            f"Findings: total={report.summary.total} errors={report.summary.errors} "
            f"warnings={report.summary.warnings} info={report.summary.info}"
        ),
    ]
    for check in report.checks:
        lines.append(f"- [{check.severity.value.upper()}] {check.type.value}: {check.message}")
        if check.suggestion:
            lines.append(f"    Suggestion: {check.suggestion}")
    if quality.strengths:
        lines.append("Strengths:")
        lines.extend(f"- {item}" for item in quality.strengths)
    if quality.improvements:
        lines.append("Improvements:")
        lines.extend(f"- {item}" for item in quality.improvements)
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> None:
    """Analyze one order and print the findings."""
    parser = build_arg_parser()
    parsed = parser.parse_args(argv)
    configure_runtime_logging()

    engine = load_engine(Path(str(parsed.manuscript)))
    try:
        result = engine.analysis(parse_order(str(parsed.order)))
    except DataIntegrityError as exc:
        raise SystemExit(f"Invalid chapter order: {exc}") from exc

    if str(parsed.format) == "json":
        print(result.model_dump_json(indent=2, by_alias=True))
    else:
        print(render_text(result, title=engine.manuscript.title))


if __name__ == "__main__":
    main()
