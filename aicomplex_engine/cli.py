"""AIComplex CLI entrypoints."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any

from .cli_progress import ProgressTicker
from .engine import DESCRIBE_KINDS, SessionController
from .errors import ConfigurationError, InvalidCredentialError, InvalidRequestError
from .pipeline.video import VideoBlob
from .runs.history import HistoryItem, HistoryStore
from .runs.requests import ImageArtifact
from .runs.store import JsonFileStore
from .session.state import MODE_INPUTS
from .session.tour import NAVIGATION_PROMPTS
from .utils import default_data_dir, getenv_flag, load_dotenv


def _add_session_args(parser: argparse.ArgumentParser) -> None:
    default_backend = "dryrun" if getenv_flag("AICOMPLEX_DRYRUN") else "gemini"
    parser.add_argument("--backend", default=default_backend, help="Backend name (gemini or dryrun)")
    parser.add_argument("--history", help="History file (default: ~/.aicomplex/history.json)")
    parser.add_argument("--events", help="Path to events.jsonl")
    parser.add_argument("--out", default="outputs", help="Directory for generated files")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="aicomplex", description="AIComplex architectural generation engine")
    sub = parser.add_subparsers(dest="command")

    generate = sub.add_parser("generate", help="Run one generation in a mode")
    generate.add_argument("--mode", default="create", choices=sorted(MODE_INPUTS))
    generate.add_argument("--prompt", default=None)
    generate.add_argument("--negative", dest="negative_prompt", default=None)
    generate.add_argument("--source", help="Source image path")
    generate.add_argument("--reference", help="Style reference image path")
    generate.add_argument("--secondary", help="Second image path for merge modes")
    generate.add_argument("--mask", help="Mask image path for inpainting")
    generate.add_argument("--object", dest="objects", action="append", default=[], help="Decor object image path")
    generate.add_argument("--count", type=int, default=None)
    generate.add_argument("--aspect-ratio", dest="aspect_ratio", default=None)
    generate.add_argument("--variant", default=None, help="Plan mode: render or colorize")
    generate.add_argument("--sub-mode", dest="sub_mode", default=None, help="Edit mode: inpaint or merge_*")
    generate.add_argument("--model", default=None, help="Video model")
    generate.add_argument("--interior", default=None, help="Lighting mode: interior light")
    generate.add_argument("--exterior", default=None, help="Lighting mode: exterior light")
    _add_session_args(generate)

    close_up = sub.add_parser("close-up", help="Close-up renders of a region of the source image")
    close_up.add_argument("--source", required=True)
    close_up.add_argument("--box", required=True, help="left,top,right,bottom as fractions")
    close_up.add_argument("--count", type=int, default=2)
    _add_session_args(close_up)

    describe = sub.add_parser("describe", help="Write a rendering prompt for an image or keywords")
    describe.add_argument("--source")
    describe.add_argument("--keywords")
    describe.add_argument("--kind", default="auto", choices=DESCRIBE_KINDS)
    _add_session_args(describe)

    tour = sub.add_parser("tour", help="Step a virtual tour from a starting frame")
    tour.add_argument("--source", required=True)
    tour.add_argument("--move", dest="moves", action="append", default=[], help="Preset or free-form camera move")
    _add_session_args(tour)

    history = sub.add_parser("history", help="Inspect or clear the session history")
    history.add_argument("action", choices=("list", "show", "clear"))
    history.add_argument("item_id", nargs="?")
    history.add_argument("--history", help="History file (default: ~/.aicomplex/history.json)")

    return parser


def _history_path(value: str | None) -> Path:
    return Path(value).expanduser() if value else default_data_dir() / "history.json"


def _controller(args: argparse.Namespace, ticker: ProgressTicker | None = None) -> SessionController:
    history = HistoryStore(JsonFileStore(_history_path(args.history)))
    events_path = Path(args.events) if args.events else None
    return SessionController(
        history,
        backend=args.backend,
        events_path=events_path,
        on_progress=ticker.update_label if ticker else None,
    )


def _load_image(path: str | None) -> ImageArtifact | None:
    return ImageArtifact.from_path(path) if path else None


def _mode_changes(args: argparse.Namespace) -> dict[str, Any]:
    fields = MODE_INPUTS[args.mode].__dataclass_fields__
    candidates = {
        "prompt": args.prompt,
        "negative_prompt": args.negative_prompt,
        "count": args.count,
        "aspect_ratio": args.aspect_ratio,
        "variant": args.variant,
        "sub_mode": args.sub_mode,
        "model": args.model,
        "interior": args.interior,
        "exterior": args.exterior,
        "reference": _load_image(args.reference),
        "secondary": _load_image(args.secondary),
        "mask": _load_image(args.mask),
    }
    return {key: value for key, value in candidates.items() if value is not None and key in fields}


def _write_outputs(out_dir: Path, stem: str, images: tuple[ImageArtifact, ...], video: Any = None) -> list[Path]:
    written: list[Path] = []
    for idx, image in enumerate(images, start=1):
        written.append(image.save(out_dir / f"{stem}-{idx:02d}.{image.extension}"))
    if isinstance(video, VideoBlob):
        written.append(video.save(out_dir / f"{stem}.mp4"))
    return written


def _report_failure(exc: Exception) -> int:
    if isinstance(exc, InvalidCredentialError):
        print("The API key was rejected. Set GEMINI_API_KEY to a valid key and retry.")
    elif isinstance(exc, ConfigurationError):
        print(f"Configuration error: {exc}")
    elif isinstance(exc, InvalidRequestError):
        print(f"Invalid request: {exc}")
    else:
        print(f"Generation failed: {exc}")
    return 1


def _handle_generate(args: argparse.Namespace) -> int:
    ticker = ProgressTicker(f"Generating ({args.mode})", done_label="Generated in")
    controller = _controller(args, ticker)
    try:
        controller.switch_mode(args.mode)
        source = _load_image(args.source)
        if args.mode == "virtual_tour":
            if source is None:
                raise InvalidRequestError("A tour needs --source.")
            controller.start_tour(source)
        elif source is not None:
            controller.set_source_image(source)
        if args.objects:
            controller.add_composition_objects(ImageArtifact.from_path(path) for path in args.objects)
        controller.update_inputs(**_mode_changes(args))
    except (InvalidRequestError, ValueError, OSError) as exc:
        return _report_failure(exc)

    ticker.start_ticking()
    try:
        outcome = controller.generate()
    except Exception as exc:
        ticker.stop(done=False)
        return _report_failure(exc)
    ticker.stop(done=True)

    stem = controller.history.items[0].id if outcome.record_history and len(controller.history) else controller.run_id
    for path in _write_outputs(Path(args.out), stem, outcome.images, outcome.video):
        print(f"Saved {path}")
    if outcome.text:
        print(outcome.text)
    return 0


def _handle_close_up(args: argparse.Namespace) -> int:
    try:
        box = [float(part) for part in args.box.split(",")]
    except ValueError:
        print("--box must be four comma-separated numbers")
        return 1
    ticker = ProgressTicker("Rendering close-ups", done_label="Generated in")
    controller = _controller(args, ticker)
    controller.set_source_image(ImageArtifact.from_path(args.source))
    controller.update_inputs(count=args.count)
    ticker.start_ticking()
    try:
        outcome = controller.generate_close_up(box)
    except Exception as exc:
        ticker.stop(done=False)
        return _report_failure(exc)
    ticker.stop(done=True)
    for path in _write_outputs(Path(args.out), controller.history.items[0].id, outcome.images):
        print(f"Saved {path}")
    return 0


def _handle_describe(args: argparse.Namespace) -> int:
    controller = _controller(args)
    if args.keywords:
        controller.update_inputs(prompt=args.keywords)
    if args.source:
        controller.set_source_image(ImageArtifact.from_path(args.source))
    try:
        text = controller.describe_source(args.kind)
    except Exception as exc:
        return _report_failure(exc)
    print(text)
    return 0


def _handle_tour(args: argparse.Namespace) -> int:
    controller = _controller(args)
    controller.start_tour(ImageArtifact.from_path(args.source))
    out_dir = Path(args.out)
    for idx, move in enumerate(args.moves, start=1):
        label = move if move in NAVIGATION_PROMPTS else "custom move"
        ticker = ProgressTicker(f"Tour frame {idx}: {label}", done_label="Frame ready in")
        ticker.start_ticking()
        try:
            frame = controller.navigate_tour(move)
        except Exception as exc:
            ticker.stop(done=False)
            return _report_failure(exc)
        ticker.stop(done=True)
        path = frame.save(out_dir / f"{controller.run_id}-tour-{idx:02d}.{frame.extension}")
        print(f"Saved {path}")
    return 0


def _history_line(item: HistoryItem) -> str:
    outputs = f"{len(item.generated_images)} image(s)"
    if item.generated_text:
        outputs = "text"
    elif item.video_model:
        outputs = f"video ({item.video_model})"
    return f"{item.id}  {item.created_at}  {item.mode:<13} {outputs}  {item.inputs.prompt[:60]}"


def _handle_history(args: argparse.Namespace) -> int:
    store = HistoryStore(JsonFileStore(_history_path(args.history)))
    if args.action == "clear":
        store.clear()
        print("History cleared.")
        return 0
    if args.action == "show":
        item = store.get(args.item_id or "")
        if item is None:
            print(f"No history item {args.item_id!r}")
            return 1
        payload = {
            "id": item.id,
            "mode": item.mode,
            "created_at": item.created_at,
            "prompt": item.inputs.prompt,
            "negative_prompt": item.inputs.negative_prompt,
            "count": item.inputs.count,
            "options": dict(item.inputs.options),
            "generated_images": len(item.generated_images),
            "generated_text": item.generated_text,
            "video_model": item.video_model,
        }
        print(json.dumps(payload, indent=2, default=str))
        return 0
    if not len(store):
        print("History is empty.")
        return 0
    for item in store:
        print(_history_line(item))
    print(f"{len(store)} item(s)")
    return 0


def main() -> None:
    load_dotenv()
    parser = _build_parser()
    args = parser.parse_args()
    handlers = {
        "generate": _handle_generate,
        "close-up": _handle_close_up,
        "describe": _handle_describe,
        "tour": _handle_tour,
        "history": _handle_history,
    }
    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        raise SystemExit(1)
    raise SystemExit(handler(args))


if __name__ == "__main__":
    main()
