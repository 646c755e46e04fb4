#!/usr/bin/env python3

import asyncio
import argparse
import uvicorn
from config.config import WEB_HOST, WEB_PORT, LOG_LEVEL, LOG_FILE
from log_utils import setup_logging
from web.web import create_app


async def main(args):
    logger = setup_logging(
        level=args.log_level,
        log_file=LOG_FILE,
        enable_console=True,
        enable_structured=not args.plain_logs
    )
    logger.info("Starting txreflex service")
    logger.info(f"Args: host={args.host}, port={args.port}, log_level={args.log_level}")

    config_web = uvicorn.Config(
        create_app(),
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
        access_log=True
    )
    server_web = uvicorn.Server(config_web)
    logger.info(f"Web server configured on port {args.port}")

    try:
        await server_web.serve()
    except asyncio.CancelledError:
        logger.info("Server cancelled, shutting down gracefully")
    except Exception as e:
        logger.error(f"Server error: {str(e)}")
        raise


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description='txreflex reaction game service')
    parser.add_argument('--host', type=str, default=WEB_HOST,
                        help=f'Bind address (default: {WEB_HOST})')
    parser.add_argument('--port', type=int, default=WEB_PORT,
                        help=f'HTTP port (default: {WEB_PORT})')
    parser.add_argument('--log-level', type=str, default=LOG_LEVEL,
                        help=f'Log level (default: {LOG_LEVEL})')
    parser.add_argument('--plain-logs', action='store_true',
                        help='Use plain text logs instead of JSON')

    args = parser.parse_args()

    try:
        asyncio.run(main(args))
    except KeyboardInterrupt:
        pass
