"""HTTP server entry point."""

import argparse
import logging

import uvicorn

from .config import settings

logger = logging.getLogger(__name__)


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the Knowledge Graph Service HTTP interface")
    parser.add_argument("--host", default=settings.http.host, help="Bind address")
    parser.add_argument("--port", type=int, default=settings.http.port, help="Bind port")
    args = parser.parse_args()

    logging.basicConfig(level=settings.http.log_level)
    logger.info(f"Serving on {args.host}:{args.port} (store backend: {settings.store.backend})")
    uvicorn.run(
        "knowledge_graph_service.web.app:app",
        host=args.host,
        port=args.port,
        log_level=settings.http.log_level.lower(),
    )


if __name__ == "__main__":
    main()
