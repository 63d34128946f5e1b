"""
CrossRank - run one prompt through the peer-evaluation pipeline

Usage:
  crossrank --prompt "Explain CRDTs" --models gpt-4o,claude-3-5-sonnet-20241022,gemini-1.5-flash,mistral-large-latest
  crossrank --prompt-file q.txt --image chart.png --models ...   # Vision prompt
  crossrank --prompt "..." --models ... --json                   # Print result as JSON
  crossrank --list-models                                        # Show the catalog
  crossrank --health                                             # Ping every model
  crossrank --serve --port 8000                                  # Start the HTTP API
"""

import argparse
import asyncio
import base64
import json
import mimetypes
import sys
from pathlib import Path

from . import config
from .config import get_arbiter_model, set_arbiter_model, setup_logging, is_sentinel
from .models import DEFAULT_CATALOG
from .pipeline import PipelineController, PipelineState
from .providers import build_adapters, health_check
from .records import Prompt


def format_table(headers: list[str], rows: list[list], alignments: list[str] | None = None) -> str:
    """Plain-text table, columns padded to the widest cell."""
    alignments = alignments or ['l'] * len(headers)
    widths = [max(len(h), max((len(str(row[i])) for row in rows), default=0)) for i, h in enumerate(headers)]

    def cell(text, i):
        return str(text).rjust(widths[i]) if alignments[i] == 'r' else str(text).ljust(widths[i])

    lines = ['  '.join(cell(h, i) for i, h in enumerate(headers)),
             '  '.join('-' * w for w in widths)]
    lines.extend('  '.join(cell(c, i) for i, c in enumerate(row)) for row in rows)
    return '\n'.join(lines)


def encode_image(path: str) -> str:
    """Read an image file and return it as a data URL."""
    file = Path(path)
    media_type = mimetypes.guess_type(file.name)[0] or "image/jpeg"
    return f"data:{media_type};base64,{base64.b64encode(file.read_bytes()).decode('ascii')}"


def print_models():
    arbiter = get_arbiter_model()
    rows = [[m.id, m.display_name, m.vendor.value, "yes" if m.supports_vision else "no",
             "*" if m.id == arbiter else ""] for m in DEFAULT_CATALOG.all()]
    print(format_table(["Model", "Name", "Vendor", "Vision", "Arbiter"], rows))


def print_result(result):
    names = {r.model_id: r.display_name for r in result.responses}

    print(f"\n{'=' * 60}\n  Responses\n{'=' * 60}")
    for r in result.responses:
        flag = " [FAILED]" if is_sentinel(r.text) else ""
        print(f"\n--- {r.display_name}{flag} ---\n{r.text}")

    evaluators = {e.evaluator_model_id for e in result.evaluations}
    print(f"\n{'=' * 60}\n  Peer Scores ({len(result.evaluations)} scores from {len(evaluators)} evaluators)\n{'=' * 60}")
    rows = []
    for r in result.responses:
        score = result.mean_scores.get(r.model_id)
        count = sum(1 for e in result.evaluations if e.target_model_id == r.model_id)
        rows.append([r.display_name, f"{score:.2f}" if score is not None else "-", str(count),
                     "*" if r.model_id in result.top_three else ""])
    print(format_table(["Model", "Mean", "Scores", "Top 3"], rows, ['l', 'r', 'r', 'l']))

    print(f"\n{'=' * 60}\n  Final Ranking\n{'=' * 60}")
    for i, model_id in enumerate(result.ranking.ordered_model_ids, 1):
        print(f"  {i}. {names.get(model_id, model_id)}")
    if result.ranking.reasoning:
        print(f"\n  {result.ranking.reasoning}")


async def run_comparison(args) -> int:
    model_ids = [m.strip() for m in args.models.split(",") if m.strip()] if args.models else []
    text = Path(args.prompt_file).read_text(encoding="utf-8") if args.prompt_file else (args.prompt or "")
    prompt = Prompt(text, tuple(encode_image(p) for p in args.image or []))

    unknown = [m for m in model_ids if m not in DEFAULT_CATALOG]
    if unknown:
        print(f"Warning: unknown models skipped: {', '.join(unknown)}")
    if len(model_ids) > config.MAX_SELECTED_MODELS:
        print(f"Warning: {len(model_ids)} models selected; comparisons are tuned for "
              f"{config.MIN_SELECTED_MODELS}-{config.MAX_SELECTED_MODELS}")

    if not args.json:
        print(f"\n{'=' * 60}")
        print("  CROSSRANK: Peer Evaluation")
        print(f"{'-' * 60}")
        print(f"  Models:      {len(model_ids)} - {', '.join(model_ids)}")
        print(f"  Images:      {len(prompt.images)}")
        print(f"  Arbiter:     {get_arbiter_model()}")
        print(f"{'=' * 60}")

    def on_state(state: PipelineState):
        if not args.json and state not in (PipelineState.COMPLETE, PipelineState.FAILED):
            print(f"  [{state.value}]", flush=True)

    controller = PipelineController(build_adapters(timeout=args.timeout), DEFAULT_CATALOG, timeout=args.timeout)
    result = await controller.run(prompt, model_ids, on_state=on_state)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    elif result.ok:
        print_result(result)
    else:
        print(f"\nRun failed during {result.stage.value}: [{result.kind.value}] {result.error.message}")
    return 0 if result.ok else 1


async def run_health(args) -> int:
    models = DEFAULT_CATALOG.all()
    print(f"\n{'=' * 60}\nLLM API Health Check\n{'=' * 60}\nTesting {len(models)} models...\n")
    results = await health_check(build_adapters(timeout=args.timeout), models, timeout=args.timeout)
    working = 0
    for model_id, status in results.items():
        print(f"  [{'OK' if status['success'] else 'FAIL'}] {model_id}: {status['message']}")
        working += status["success"]
    print(f"\n{'=' * 60}\nResult: {working}/{len(models)} models OK\n{'=' * 60}")
    return 0 if working == len(models) else 1


def serve(args) -> int:
    import uvicorn

    from .api import create_app

    uvicorn.run(create_app(timeout=args.timeout), host=args.host, port=args.port, log_level=args.log_level.lower())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="CrossRank - cross-vendor LLM comparison by peer evaluation",
        epilog=f"Available models: {', '.join(m.id for m in DEFAULT_CATALOG.all())}"
    )
    parser.add_argument("--prompt", type=str, help="Prompt text")
    parser.add_argument("--prompt-file", type=str, help="Read prompt text from a file")
    parser.add_argument("--image", action="append", help="Image file to attach (repeatable)")
    parser.add_argument("--models", type=str, help="Models to compare (comma-separated ids)")
    parser.add_argument("--arbiter", type=str, help="Model id that produces the final ranking")
    parser.add_argument("--timeout", type=float, default=config.DEFAULT_TIMEOUT, help="Per-call timeout in seconds")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    parser.add_argument("--list-models", action="store_true", help="List available models")
    parser.add_argument("--health", action="store_true", help="Run API health check")
    parser.add_argument("--serve", action="store_true", help="Start the HTTP API")
    parser.add_argument("--host", type=str, default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--log-level", type=str, default=config.LOG_LEVEL, help="DEBUG, INFO, WARNING, ERROR")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    if args.arbiter:
        if args.arbiter not in DEFAULT_CATALOG:
            parser.error(f"Arbiter model '{args.arbiter}' not found")
        set_arbiter_model(args.arbiter)

    if args.list_models:
        print_models()
        return 0
    if args.health:
        return asyncio.run(run_health(args))
    if args.serve:
        return serve(args)
    if not (args.prompt or args.prompt_file) or not args.models:
        parser.error("--prompt (or --prompt-file) and --models are required")
    return asyncio.run(run_comparison(args))


if __name__ == "__main__":
    sys.exit(main())
