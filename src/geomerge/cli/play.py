from __future__ import annotations

import argparse
import logging
from typing import Sequence

from geomerge.cli.pygame_viewer import run_pygame_viewer
from geomerge.cli.viewer import DEFAULT_STORE_PATH, run_text_viewer


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="geomerge-play", description="Canonical geomerge launcher.")
    parser.add_argument("--save-path", default=DEFAULT_STORE_PATH, help="Key-value JSON file holding the saved game.")
    parser.add_argument("--namespace", default=None, help="Seed namespace for generated tokens.")
    parser.add_argument("--text", action="store_true", help="Play in the terminal instead of the pygame window.")
    parser.add_argument("--headless", action="store_true", help="Run the pygame startup path without a window.")
    parser.add_argument("--verbose", action="store_true", help="Log debug output from the game core.")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    if args.text:
        return run_text_viewer(save_path=args.save_path, namespace=args.namespace)
    return run_pygame_viewer(save_path=args.save_path, namespace=args.namespace, headless=args.headless)


if __name__ == "__main__":
    raise SystemExit(main())
