from __future__ import annotations

import argparse
import logging

from chainsheet import load_settings
from chainsheet_ui.app import DEFAULT_WORKERS, launch


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Spreadsheet of chained LLM transformation steps")
    parser.add_argument("--config", help="JSON settings file read at startup")
    parser.add_argument("--workers", type=int, default=DEFAULT_WORKERS, help="chains allowed to run at once")
    parser.add_argument("--log-level", default="INFO", help="logging level (DEBUG, INFO, WARNING, ...)")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = load_settings(args.config)
    logging.getLogger(__name__).info("Starting with provider %s", settings.provider.value)
    launch(settings, workers=args.workers)


if __name__ == "__main__":
    main()
