# =============================================================================
# pharmaroute/cli/route.py -- CLI Route Command (Images -> Fallback Ladder)
# =============================================================================
#
# Runs one extraction request through the fallback engine from the command
# line:
#
#   Stage 1: Primary      -- each provider of the tier, in priority order
#   Stage 2: Preprocessing -- re-encoded variants on the retry providers
#   Stage 3/4: Degradation -- manual input or text-only recommendations
#
# Typical usage:
#   python -m pharmaroute.cli.route pack.jpg                       # free tier
#   python -m pharmaroute.cli.route front.jpg back.jpg --tier business
#   python -m pharmaroute.cli.route pack.png --json --max-attempts 2
#
# Input constraints:
#   - Supported formats: JPEG, PNG, WEBP
#   - Maximum file size: 10 MB per image
#
# Output modes:
#   - Text (default): fields, confidence, attempt log, recommendations
#   - JSON (--json): the full FallbackOutcome, suitable for scripting
#
# --json implies --quiet: logs go to stderr at WARNING+ so stdout holds
# only the result.
# =============================================================================

"""Standalone CLI for running the pharmaroute fallback ladder.

Usage::

    python -m pharmaroute.cli.route /path/to/pack.jpg
    python -m pharmaroute.cli.route front.jpg back.jpg --tier standard --json
    python -m pharmaroute.cli.route pack.png --no-preprocessing --no-manual

Exits with 0 once the ladder has run (including degraded outcomes) and 1
when an input file is missing, unsupported or too large.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time
from pathlib import Path

from pharmaroute.config.tier_defaults import KNOWN_TIERS
from pharmaroute.models.extraction import TaskKind
from pharmaroute.models.fallback import FallbackOptions, FallbackOutcome

_ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}
_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def _format_text_output(outcome: FallbackOutcome) -> str:
    """Format *outcome* as a human-readable report."""
    lines: list[str] = []
    sep = "=" * 60

    lines.append(sep)
    lines.append("  pharmaroute: Extraction Report")
    lines.append(sep)
    lines.append("")

    status = "SUCCESS" if outcome.success else f"DEGRADED ({outcome.degradation_level.value})"
    lines.append(f"Status: {status}")
    if outcome.provider_id:
        lines.append(f"Provider: {outcome.provider_id}  |  Strategy: {outcome.strategy}")
    lines.append(
        f"Confidence: {outcome.confidence:.0%}  |  Composite: {outcome.composite_confidence:.0%}"
        f"  |  Adjusted: {outcome.adjusted_confidence:.0%}"
    )
    lines.append(f"Attempts: {outcome.total_attempts}  |  Time: {outcome.total_time_ms / 1000:.2f}s")
    lines.append(f"Dosage form: {outcome.pharmaceutical_form}")
    lines.append("")

    fields = outcome.fields
    if fields:
        lines.append("EXTRACTED FIELDS")
        lines.append("-" * 40)
        lines.append(f"  Product:       {fields.product_name or '-'}")
        lines.append(f"  Batch:         {fields.batch_number or '-'}")
        lines.append(f"  Expiry:        {fields.expiry_date or '-'}")
        lines.append(f"  Manufacturer:  {fields.manufacturer or '-'}")
        lines.append("")

    if outcome.validation and outcome.validation.issues:
        lines.append("VALIDATION ISSUES")
        lines.append("-" * 40)
        for issue in outcome.validation.issues:
            lines.append(f"  - {issue}")
        lines.append("")

    if outcome.attempts:
        lines.append("ATTEMPTS")
        lines.append("-" * 40)
        for attempt in outcome.attempts:
            provider = attempt.provider_id
            if attempt.redirected:
                provider = f"{attempt.assigned_provider_id} -> {attempt.provider_id}"
            result = f"{attempt.confidence:.0%}" if attempt.success else f"failed: {attempt.error}"
            lines.append(f"  [{attempt.strategy}] {provider}  {result}  ({attempt.duration_ms:.0f} ms)")
        lines.append("")

    if outcome.recommendations:
        lines.append("RECOMMENDATIONS")
        lines.append("-" * 40)
        for recommendation in outcome.recommendations:
            lines.append(f"  * {recommendation}")
        lines.append("")

    lines.append(sep)
    return "\n".join(lines)


def _format_json_output(outcome: FallbackOutcome) -> str:
    return outcome.model_dump_json(indent=2)


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


def _suppress_logs() -> None:
    """Send structlog and stdlib logging to stderr at WARNING+.

    Must run before ``pharmaroute.main`` is imported: structlog caches
    loggers on first use.
    """
    import logging
    import os

    import structlog

    os.environ["LOG_LEVEL"] = "WARNING"

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.WARNING),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(logging.WARNING)
    root.addHandler(handler)
    root.setLevel(logging.WARNING)

    for noisy in ("httpx", "httpcore", "aiosqlite"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _load_images(paths: list[Path]) -> list[bytes] | None:
    """Read and check every image; print the first problem and return ``None``."""
    images: list[bytes] = []
    for path in paths:
        if not path.exists():
            print(f"Error: File not found: {path}", file=sys.stderr)
            return None
        suffix = path.suffix.lower()
        if suffix not in _ALLOWED_EXTENSIONS:
            print(
                f"Error: Unsupported file type: {suffix}. "
                f"Allowed: {', '.join(sorted(_ALLOWED_EXTENSIONS))}",
                file=sys.stderr,
            )
            return None
        data = path.read_bytes()
        if len(data) > _MAX_FILE_SIZE:
            print(
                f"Error: File too large: {len(data):,} bytes. Maximum: {_MAX_FILE_SIZE:,} bytes.",
                file=sys.stderr,
            )
            return None
        images.append(data)
    return images


def _options_from_args(args: argparse.Namespace) -> FallbackOptions:
    # Unset flags keep the configured defaults.
    overrides: dict = {
        "tier_id": args.tier,
        "task_kind": TaskKind(args.task),
        "preferred_providers": args.prefer or [],
        "prompt": args.prompt or "",
        "user_id": args.user,
    }
    if args.max_attempts is not None:
        overrides["max_attempts"] = args.max_attempts
    if args.min_confidence is not None:
        overrides["min_confidence"] = args.min_confidence
    if args.no_preprocessing:
        overrides["enable_preprocessing_retry"] = False
    if args.no_manual:
        overrides["enable_manual_fallback"] = False
    return _options_with_overrides(overrides)


def _options_with_overrides(overrides: dict) -> FallbackOptions:
    """Merge CLI *overrides* over the engine's configured defaults."""
    from pharmaroute.main import build_default_options, config

    base = build_default_options(config)
    return base.model_copy(update=overrides)


async def _run(args: argparse.Namespace) -> int:
    """Load the images, run the ladder and print the outcome."""
    from pharmaroute.main import run_fallback

    paths = [Path(p).resolve() for p in args.images]
    images = _load_images(paths)
    if images is None:
        return 1

    options = _options_from_args(args)
    print(f"Routing {len(images)} image(s) on tier '{options.tier_id}'", file=sys.stderr)
    start = time.monotonic()

    outcome = await run_fallback(images, options)

    print(f"Done in {time.monotonic() - start:.1f}s", file=sys.stderr)
    text = _format_json_output(outcome) if args.json_output else _format_text_output(outcome)
    if args.output:
        Path(args.output).write_text(text, encoding="utf-8")
        print(f"Results written to: {args.output}", file=sys.stderr)
    else:
        print(text)
    return 0


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m pharmaroute.cli.route",
        description=(
            "Extract product name, batch number, expiry date and manufacturer "
            "from pharmaceutical packaging photos using the tiered provider "
            "fallback ladder."
        ),
    )
    parser.add_argument("images", nargs="+", help="Packaging photos (JPEG, PNG or WEBP).")
    parser.add_argument("--tier", default="free", choices=KNOWN_TIERS, help="Subscriber tier (default: free).")
    parser.add_argument(
        "--task",
        default=TaskKind.OCR.value,
        choices=[kind.value for kind in TaskKind],
        help="Task kind to route (default: ocr).",
    )
    parser.add_argument("--prompt", default=None, help="Override the extraction instruction.")
    parser.add_argument(
        "--prefer",
        action="append",
        default=None,
        metavar="PROVIDER",
        help="Try PROVIDER first.  Repeat to prefer several, in order.",
    )
    parser.add_argument("--max-attempts", type=int, default=None, help="Provider-call budget for the run.")
    parser.add_argument("--min-confidence", type=float, default=None, help="Confidence required in the primary stage.")
    parser.add_argument(
        "--no-preprocessing",
        action="store_true",
        help="Skip the preprocessing retry stage.",
    )
    parser.add_argument(
        "--no-manual",
        action="store_true",
        help="Degrade to text-only verification instead of manual input.",
    )
    parser.add_argument("--user", default=None, help="User id attached to usage records.")
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Output the full outcome as JSON.",
    )
    parser.add_argument("--output", "-o", default=None, help="Write results to a file instead of stdout.")
    parser.add_argument("--quiet", "-q", action="store_true", help="Suppress log output.")
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the route tool."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.quiet or args.json_output:
        _suppress_logs()

    sys.exit(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()
