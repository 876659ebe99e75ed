import argparse
import logging
import os
import sys

from fileserve import log as logsetup
from fileserve.access import request_logger
from fileserve.config import ServerConfig, StartupError, resolve_root
from fileserve.handler import FileHandler
from fileserve.router import Router
from fileserve.server import ThreadedHTTPServer as Server

log = logging.getLogger("fileserve")


def fatal(message, *args) -> None:
    log.critical(message, *args)
    sys.exit(1)


def build_parser(wd: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Serve a directory over HTTP")
    parser.add_argument("--addr", "-a", type=str, default="", help="address to serve on (default: all interfaces)")
    parser.add_argument("--port", "-p", type=int, default=8000, help="port to serve on")
    parser.add_argument("--dir", "-d", type=str, default=wd, help="the directory to serve")
    parser.add_argument("--workers", "-w", type=int, default=4, help="number of worker threads")
    parser.add_argument("--debug", "-D", action="store_true", help="enable debug logging")
    return parser


def main(argv=None) -> None:
    logsetup.configure()

    try:
        wd = os.getcwd()
    except OSError as e:
        fatal("%s", e)

    args = build_parser(wd).parse_args(argv)

    try:
        root = resolve_root(args.dir)
    except StartupError as e:
        fatal("%s", e)

    config = ServerConfig(host=args.addr, port=args.port, root=root, workers=args.workers, debug=args.debug)
    logsetup.configure(debug=config.debug)

    router = Router()
    router.route("/", request_logger(FileHandler(config.root, config.chunk_size)))

    server = Server(config, router)
    try:
        server.bind()
    except OSError as e:
        fatal("listen tcp %s:%d: %s", config.host, config.port, e)

    log.info("Serving %s on HTTP %s:%d", config.root, config.host, server.server_address[1])
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        log.info("shutting down")


if __name__ == "__main__":
    main()
