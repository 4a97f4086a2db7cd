"""Entry point for the log ingestion server."""

import logging
import sys

from log_ingestor.app import create_app
from log_ingestor.config import Config
from log_ingestor.context import build_context


def main():
    config = Config.from_env()
    logging.basicConfig(
        level=config["logging"]["level"],
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        stream=sys.stderr,
    )
    logger = logging.getLogger(__name__)

    context = build_context(config)
    app = create_app(context=context)

    server = config["server"]
    logger.info("Log ingestion server running on %s:%d", server["host"], server["port"])
    logger.info("Database: %s", context.store.path)
    try:
        app.run(host=server["host"], port=server["port"], debug=server["debug"],
                threaded=True, use_reloader=False)
    finally:
        context.close()


if __name__ == "__main__":
    main()
