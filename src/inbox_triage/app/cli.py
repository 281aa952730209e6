from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from inbox_triage.app.service import build_service, load_gmail_config
from inbox_triage.config.settings import load_settings
from inbox_triage.errors import ConfigError, ProviderAuthError
from inbox_triage.gmail.client import GmailClient

logger = logging.getLogger("inbox_triage")

EXIT_CONFIG = 2
EXIT_AUTH = 3


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Label and triage new Gmail messages as they arrive.")
    parser.add_argument("--once", action="store_true", help="Run a single pass and exit.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Apply labels but only log automation actions instead of running them.",
    )
    parser.add_argument(
        "--authorize",
        action="store_true",
        help="Run the Google login flow, store the token and exit.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    try:
        settings = load_settings(require_gmail=not args.authorize)
    except ConfigError as exc:
        logging.basicConfig(level=logging.ERROR, format="%(levelname)s %(name)s: %(message)s")
        logger.error("[CONFIG] %s", exc)
        return EXIT_CONFIG

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.authorize:
        client = GmailClient(load_gmail_config(settings))
        client.connect(interactive=True)
        logger.info("[AUTH] Gmail token stored at %s", settings.token_path)
        return 0

    try:
        service = build_service(settings, dry_run=args.dry_run)
        if args.once:
            summary = service.monitor.check_once(service.account)
            logger.info("[RUN] %s", summary)
        else:
            service.monitor.start(service.account)
    except ProviderAuthError as exc:
        logger.error("[AUTH] %s", exc)
        return EXIT_AUTH
    except KeyboardInterrupt:
        logger.info("[RUN] interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
