"""CLI for proposing a constraint-satisfying chapter order."""

from __future__ import annotations

import argparse
from pathlib import Path

from manuscript_engine.adapters.observability import configure_runtime_logging
from manuscript_engine.api.contracts import SuggestionResult, save_suggestion_json
from manuscript_engine.cli.analyze import load_engine


def build_arg_parser() -> argparse.ArgumentParser:
    """Define CLI flags for order suggestion."""
    parser = argparse.ArgumentParser(
        description="Suggest a chapter order that honors dependencies and shapes tension."
    )
    parser.add_argument("--manuscript", required=True, help="Path to manuscript JSON.")
    parser.add_argument("--format", choices=["text", "json"], default="text")
    parser.add_argument(
        "--output",
        default="",
        help="Optional path to also write the suggestion as JSON.",
    )
    return parser


def render_text(result: SuggestionResult) -> str:
    lines = [
        f"Suggested order: {', '.join(result.suggestion.order) or '(empty)'}",
        (
            f"Quality score: {result.quality.score}/100 "
            f"(manuscript order: {result.baseline_score}/100)"
        ),
        "Reasoning:",
    ]
    lines.extend(f"- {item}" for item in result.suggestion.reasoning)
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> None:
    """Suggest an order for one manuscript."""
    parser = build_arg_parser()
    parsed = parser.parse_args(argv)
    configure_runtime_logging()

    engine = load_engine(Path(str(parsed.manuscript)))
    result = engine.suggestion()

    if str(parsed.format) == "json":
        print(result.model_dump_json(indent=2, by_alias=True))
    else:
        print(render_text(result))
    if str(parsed.output).strip():
        output_path = Path(str(parsed.output))
        save_suggestion_json(output_path, result)
        print(f"Wrote suggestion JSON: {output_path}")


if __name__ == "__main__":
    main()
