"""Run the cluster membership API on this node.

Usage:
    python start_api.py [--node NAME] [--port P] [--store-dir PATH] \
        [--state-dir PATH] [--lock-timeout S] [--ssl-certfile F --ssl-keyfile F]

Values default to the MEMBERSHIP_* environment variables when set (see
``membership.settings``).
"""

import argparse
import logging
import os
from typing import List

import uvicorn

from api.main import app
from membership import ClusterCoordinator, Settings


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    env = os.environ
    parser = argparse.ArgumentParser(description="Start the cluster membership API")
    parser.add_argument("--node", default=env.get("MEMBERSHIP_NODENAME"))
    parser.add_argument("--host", default=env.get("MEMBERSHIP_API_HOST", "0.0.0.0"))
    parser.add_argument(
        "--port", type=int, default=int(env.get("MEMBERSHIP_API_PORT", 8006))
    )
    parser.add_argument("--store-dir", dest="store_dir", default=env.get("MEMBERSHIP_STORE_DIR"))
    parser.add_argument("--state-dir", dest="state_dir", default=env.get("MEMBERSHIP_STATE_DIR"))
    parser.add_argument(
        "--lock-timeout",
        dest="lock_timeout",
        type=float,
        default=None,
        help="seconds to wait for the membership locks",
    )
    parser.add_argument("--ssl-certfile", dest="ssl_certfile", default=env.get("MEMBERSHIP_SSL_CERT"))
    parser.add_argument("--ssl-keyfile", dest="ssl_keyfile", default=env.get("MEMBERSHIP_SSL_KEY"))
    parser.add_argument("--log-level", dest="log_level", default=env.get("MEMBERSHIP_LOG_LEVEL", "info"))
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> Settings:
    return Settings.from_env(
        nodename=args.node,
        store_dir=args.store_dir,
        state_dir=args.state_dir,
        lock_timeout=args.lock_timeout,
        api_port=args.port,
    )


def main(argv: List[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.state.coordinator = ClusterCoordinator(build_settings(args))
    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        ssl_certfile=args.ssl_certfile,
        ssl_keyfile=args.ssl_keyfile,
        log_level=args.log_level.lower(),
    )


if __name__ == "__main__":
    main()
