"""Process entry point for the image tool server.

Interface responsibilities:
    - Parse transport/logging options.
    - Configure logging on stderr (stdout is the MCP channel).
    - Build components, run startup checks, then serve.

Transports:
    - `stdio` (default): MCP over stdin/stdout.
    - `http`: FastAPI app served by uvicorn.

Error handling strategy:
    Keyboard interrupts exit cleanly with status 0. Any other startup failure
    is logged and exits with status 1.
"""

import sys
import asyncio
import argparse
import logging

from imagegen.config import settings


logger = logging.getLogger(__name__)


def setup_logging(level=None) -> None:
    level = level or ("DEBUG" if settings.DEBUG else settings.LOG_LEVEL)
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # requests/urllib3 debug output would include request headers.
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="imagegen-mcp",
        description="Expose OpenAI image generation as MCP tools.",
    )
    parser.add_argument("--transport", choices=("stdio", "http"), default="stdio")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--log-level", default=None)
    parser.add_argument("--config-path", default=None, help="Credential file location")
    parser.add_argument("--output-dir", default=None, help="Directory for generated images")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    from imagegen.api.bootstrap import build_components, prepare_environment

    try:
        components = build_components(config_path=args.config_path, output_dir=args.output_dir)
        prepare_environment(components)

        if args.transport == "http":
            import uvicorn
            from imagegen.api.http_api import create_app

            uvicorn.run(create_app(components.router), host=args.host, port=args.port)
        else:
            from imagegen.api.server import run_stdio

            asyncio.run(run_stdio(components.router))

    except KeyboardInterrupt:
        logger.info("Received interrupt, shutting down")
        return 0
    except Exception:
        logger.exception("Server error")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
