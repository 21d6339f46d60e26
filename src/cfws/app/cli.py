"""
Command-line feed printer.

Connects to the Crypto Facilities WebSocket API, subscribes to the requested
public and private feeds and prints every decoded message until interrupted
(Ctrl+C) or until ``--duration`` seconds have passed. On exit it unsubscribes
from everything it subscribed to and closes the connection.

Credentials for private feeds are read from --api-key / --api-secret or from
the CF_API_KEY / CF_API_SECRET environment variables.

Usage:
    cfws-feed --feed ticker --feed trade --product PI_XBTUSD
    cfws-feed --private-feed fills --private-feed open_orders --duration 60
"""

import argparse
import asyncio
import logging
import os
from typing import List, Optional

from ..clients.cf_client import DEFAULT_WS_URL, CryptoFacilitiesWebSocket
from ..utils.signing import InvalidSecretEncoding

logger = logging.getLogger(__name__)


def configure_logging(debug: bool = False) -> None:
    """Root logger at WARNING, cfws loggers at INFO (DEBUG with --debug)."""
    logging.basicConfig(
        level=logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    level = logging.DEBUG if debug else logging.INFO
    logging.getLogger('cfws').setLevel(level)

    # Keep queue chatter quiet unless debugging
    if not debug:
        logging.getLogger('cfws.clients.message_queue').setLevel(logging.WARNING)

    # Frame-level logs from the websockets library are only useful in debug mode
    logging.getLogger('websockets').setLevel(logging.DEBUG if debug else logging.WARNING)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Print messages from the Crypto Facilities WebSocket feed"
    )

    parser.add_argument(
        '--url',
        type=str,
        default=DEFAULT_WS_URL,
        help=f'WebSocket endpoint (default: {DEFAULT_WS_URL})'
    )

    parser.add_argument(
        '--feed',
        action='append',
        dest='feeds',
        help='Public feed to subscribe to, repeatable (default: ticker)'
    )

    parser.add_argument(
        '--product',
        action='append',
        dest='products',
        help='Product ID for public feeds, repeatable (default: PI_XBTUSD)'
    )

    parser.add_argument(
        '--private-feed',
        action='append',
        dest='private_feeds',
        default=[],
        help='Private feed to subscribe to, repeatable (needs credentials)'
    )

    parser.add_argument(
        '--api-key',
        type=str,
        default=os.environ.get('CF_API_KEY'),
        help='Public API key (default: $CF_API_KEY)'
    )

    parser.add_argument(
        '--api-secret',
        type=str,
        default=os.environ.get('CF_API_SECRET'),
        help='Base64 API secret (default: $CF_API_SECRET)'
    )

    parser.add_argument(
        '--keepalive',
        type=float,
        default=59.0,
        help='Idle seconds before a keepalive ping (default: 59)'
    )

    parser.add_argument(
        '--duration',
        type=float,
        default=None,
        help='Stop after this many seconds (default: run until Ctrl+C)'
    )

    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )

    args = parser.parse_args(argv)
    args.feeds = args.feeds or ['ticker']
    args.products = args.products or ['PI_XBTUSD']

    if (args.api_key is None) != (args.api_secret is None):
        parser.error('--api-key and --api-secret must be given together')

    return args


async def print_messages(ws: CryptoFacilitiesWebSocket) -> None:
    """Print messages until the connection ends."""
    async for message in ws:
        print(message)


async def run(args: argparse.Namespace) -> None:
    """
    Subscribe, print, then unsubscribe and close.

    Private subscriptions are only attempted when credentials are present;
    an invalid secret is reported and the private feeds are skipped.
    """
    ws = CryptoFacilitiesWebSocket(
        ws_url=args.url,
        api_key=args.api_key,
        api_secret=args.api_secret,
        keepalive_interval=args.keepalive,
    )

    async with ws:
        printer = asyncio.create_task(print_messages(ws))

        for feed in args.feeds:
            await ws.subscribe(feed, args.products)

        private_feeds = []
        if args.private_feeds and not ws.has_credentials:
            logger.warning("Private feeds requested but no credentials given, skipping them")
        elif args.private_feeds:
            try:
                for feed in args.private_feeds:
                    if await ws.subscribe_private(feed) is not None:
                        private_feeds.append(feed)
            except InvalidSecretEncoding as e:
                logger.error(f"Cannot subscribe to private feeds: {e}")

        try:
            await asyncio.wait_for(asyncio.shield(printer), timeout=args.duration)
        except asyncio.TimeoutError:
            logger.info(f"Stopping after {args.duration}s")
        finally:
            for feed in args.feeds:
                await ws.unsubscribe(feed, args.products)
            for feed in private_feeds:
                await ws.unsubscribe_private(feed)

    await asyncio.gather(printer, return_exceptions=True)
    logger.info(f"Final stats: {ws.get_stats()}")


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    configure_logging(args.debug)

    print("=" * 80)
    print("Crypto Facilities WebSocket feed")
    print("=" * 80)
    print(f"Endpoint: {args.url}")
    print(f"Public feeds: {', '.join(args.feeds)} ({', '.join(args.products)})")
    if args.private_feeds:
        print(f"Private feeds: {', '.join(args.private_feeds)}")
    print("Press Ctrl+C to stop")
    print("=" * 80)

    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\nInterrupted")


if __name__ == '__main__':
    main()
