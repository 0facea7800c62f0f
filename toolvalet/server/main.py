"""CLI argument parsing and uvicorn entry point."""

import logging
import os


def main():
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="toolvalet API Server")
    parser.add_argument("--config", default=None, help="Config file (overrides TOOLVALET_CONFIG)")
    parser.add_argument("--host", default=os.getenv("TOOLVALET_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("TOOLVALET_PORT", "8000")))
    parser.add_argument("--log-level", default=os.getenv("TOOLVALET_LOG_LEVEL", "INFO"))
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(levelname)s: %(name)s - %(message)s",
    )

    if args.config:
        os.environ["TOOLVALET_CONFIG"] = args.config

    from .app import api
    uvicorn.run(api, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
