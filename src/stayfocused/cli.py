from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from stayfocused.backends import BackendError, get_backend, list_backends
from stayfocused.config import ConfigError, FocusConfig, load_config
from stayfocused.core.types import FocusOptions, ProtocolViolation
from stayfocused.runtime import controller
from stayfocused.runtime.state_store import load_state, state_to_payload

EXIT_MISSING_STATE = 13


def _positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected an integer, got {raw!r}") from exc
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return value


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _build_backend(args: argparse.Namespace, config: FocusConfig):
    backend_name = getattr(args, "backend", None) or config.backend
    backend_kwargs: dict[str, Any] = {}
    if backend_name == "llama" and getattr(args, "llama_url", None):
        backend_kwargs["base_url"] = args.llama_url
    return get_backend(backend_name, **backend_kwargs)


def _run_command(args: argparse.Namespace, config: FocusConfig) -> int:
    state_path = config.require_state_path()
    backend = _build_backend(args, config)
    options = FocusOptions(source_path=args.histfile, window_capacity=args.tail)
    trace_dir = Path(args.trace_dir) if args.trace_dir else config.trace_dir
    try:
        result = controller.run_session(
            state_path,
            backend,
            options=options,
            model=args.model or config.model,
            max_tokens=args.max_tokens or config.max_tokens,
            trace_dir=trace_dir,
        )
    except FileNotFoundError as exc:
        raise SystemExit(f"could not read {exc.filename}: {exc.strerror}") from exc
    except (BackendError, ProtocolViolation) as exc:
        raise SystemExit(f"generation service failed: {exc}") from exc
    except ValueError as exc:
        raise SystemExit(f"state file {state_path} is unreadable: {exc}") from exc

    if result.loop.final_text:
        print(result.loop.final_text)
    state = result.state
    print(f"Primary objective: {state.primary_objective or '(none)'}")
    if state.side_quests:
        print("Side quests:")
        for quest in state.side_quests:
            print(f"- {quest}")
    if result.trace_path is not None:
        print(f"Trace file: {result.trace_path}", file=sys.stderr)
    return 0


def _show_command(args: argparse.Namespace, config: FocusConfig) -> int:
    state_path = config.require_state_path()
    try:
        state = load_state(state_path)
    except FileNotFoundError:
        print(f"No saved state at {state_path}", file=sys.stderr)
        return 1
    except ValueError as exc:
        raise SystemExit(f"state file {state_path} is unreadable: {exc}") from exc
    if args.json:
        print(json.dumps(state_to_payload(state), indent=2, ensure_ascii=False))
    else:
        print(state.render_context(), end="")
    return 0


def _admin_command(args: argparse.Namespace, config: FocusConfig) -> int:
    try:
        import uvicorn
    except ImportError as exc:
        raise SystemExit("uvicorn is required to run the admin service") from exc
    uvicorn.run("stayfocused.admin.app:create_app", host=args.host, port=args.port, factory=True)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stayfocused")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress to stderr")
    subparsers = parser.add_subparsers(dest="command", required=True)

    defaults = FocusOptions()
    run_parser = subparsers.add_parser("run", help="Sync the focus state with recent history")
    run_parser.add_argument(
        "--histfile", default=defaults.source_path, help="Which histfile to tail for context."
    )
    run_parser.add_argument(
        "--tail",
        type=_positive_int,
        default=defaults.window_capacity,
        help="How many lines to tail and maintain from the histfile.",
    )
    run_parser.add_argument("--backend", choices=list_backends())
    run_parser.add_argument("--model")
    run_parser.add_argument("--llama-url")
    run_parser.add_argument("--max-tokens", type=_positive_int)
    run_parser.add_argument("--trace-dir")
    run_parser.set_defaults(func=_run_command)

    show_parser = subparsers.add_parser("show", help="Print the saved focus state")
    show_parser.add_argument("--json", action="store_true")
    show_parser.set_defaults(func=_show_command)

    admin_parser = subparsers.add_parser("admin", help="Serve the admin API")
    admin_parser.add_argument("--host", default="127.0.0.1")
    admin_parser.add_argument("--port", type=int, default=9010)
    admin_parser.set_defaults(func=_admin_command)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    try:
        config = load_config()
    except ConfigError as exc:
        raise SystemExit(str(exc)) from exc
    try:
        return args.func(args, config)
    except ConfigError as exc:
        print(exc, file=sys.stderr)
        return EXIT_MISSING_STATE


if __name__ == "__main__":
    raise SystemExit(main())
