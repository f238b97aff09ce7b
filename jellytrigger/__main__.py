import argparse
import sys

import uvicorn

from jellytrigger.core.config import settings
from jellytrigger.main import ServiceKind, create_app, service_address


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jellytrigger", description="Run one signed trigger service.")
    parser.add_argument("service", choices=[kind.value for kind in ServiceKind], help="service to run")
    parser.add_argument("--host", default=None, help="bind address (defaults to the service's configured host)")
    parser.add_argument("--port", type=int, default=None, help="bind port (defaults to the service's configured port)")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    kind = ServiceKind(args.service)
    default_host, default_port = service_address(kind, settings)

    uvicorn.run(
        create_app(kind, settings),
        host=args.host or default_host,
        port=args.port or default_port,
        log_config=None,
        timeout_graceful_shutdown=int(settings.shutdown_grace_seconds),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
