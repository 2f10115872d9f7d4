# Copyright 2026 dparv
# See LICENSE file for licensing details.

"""Command line entry point: `python -m lbregistrar`."""

from __future__ import annotations

import argparse
import logging
import signal
import sys

from lightkube import Client

from lbregistrar.config import Settings
from lbregistrar.errors import ConfigError
from lbregistrar.manager import Manager

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Register Kubernetes nodes as OCI load balancer backends"
    )
    p.add_argument("--config", help="YAML settings file")
    p.add_argument("--workers", type=int, help="Concurrent reconciliations")
    p.add_argument("--requeue-after", type=float, help="Seconds before retrying a failed registration")
    p.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    return p.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    try:
        settings = Settings.load(
            args.config,
            workers=args.workers,
            requeue_after=args.requeue_after,
            log_level=args.log_level,
        )
    except ConfigError as e:
        print(f"invalid configuration: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=settings.logging_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    manager = Manager(Client(field_manager=settings.field_manager), settings)

    def _on_signal(signum, frame):
        logger.info("received signal %d", signum)
        manager.stop()

    signal.signal(signal.SIGINT, _on_signal)
    signal.signal(signal.SIGTERM, _on_signal)
    manager.run()
    return 0


if __name__ == "__main__":  # pragma: nocover
    sys.exit(main())
