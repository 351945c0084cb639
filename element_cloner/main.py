#!/usr/bin/env python3
"""
Element Cloner - capture live page elements as self-contained HTML.

Opens a page with Playwright, captures the children of a target element
while scrolling (or a single pass), freezes every captured element with
its computed styles and embedded images, and writes a standalone export.

Usage:
    python main.py --url https://example.com --selector "#feed" --duration 20

Features:
    - Style-frozen copies that no longer depend on the page stylesheets
    - Deduplication of repeated elements during infinite scroll
    - Images embedded as data URLs
    - Iframes re-sandboxed on export
"""

import argparse
import asyncio
import logging
import sys
from urllib.parse import urlparse

from element_cloner.exceptions import ElementClonerError, HostError
from element_cloner.session import Action, ClonerSession
from element_cloner.snapshot.host import PlaywrightHost
from element_cloner.utils.constants import DEFAULT_PAGE_TIMEOUT, SETTLE_INTERVAL
from element_cloner.utils.log import (
    setup_logger,
    print_status,
    print_success,
    print_error,
    print_info,
    print_warning
)


def parse_arguments() -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog='element-cloner',
        description='Capture live page elements as self-contained HTML',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    %(prog)s --url https://example.com --output ./exports
    %(prog)s --url https://example.com --selector "main .feed" --duration 30
    %(prog)s --url https://example.com --selector ".card" --elements
        """
    )

    parser.add_argument(
        '--url', '-u',
        type=str,
        required=True,
        help='URL of the page to capture from (e.g., https://example.com)'
    )

    parser.add_argument(
        '--output', '-o',
        type=str,
        default='./exports',
        help='Output directory for exported documents (default: ./exports)'
    )

    parser.add_argument(
        '--selector', '-s',
        type=str,
        default=None,
        help='CSS selector of the capture target (default: document body)'
    )

    parser.add_argument(
        '--elements',
        action='store_true',
        help='Export the --selector element itself instead of scraping its children'
    )

    parser.add_argument(
        '--speed',
        type=int,
        default=0,
        help='0 for a single capture pass, otherwise keep scrolling (default: 0)'
    )

    parser.add_argument(
        '--direction',
        choices=('down', 'up'),
        default='down',
        help='Scroll direction while capturing (default: down)'
    )

    parser.add_argument(
        '--duration', '-d',
        type=float,
        default=15.0,
        help='Seconds to keep scrolling when --speed is above 0 (default: 15)'
    )

    parser.add_argument(
        '--settle',
        type=float,
        default=SETTLE_INTERVAL,
        help=f'Seconds to wait after each scroll (default: {SETTLE_INTERVAL})'
    )

    parser.add_argument(
        '--timeout',
        type=int,
        default=DEFAULT_PAGE_TIMEOUT,
        help=f'Page load timeout in milliseconds (default: {DEFAULT_PAGE_TIMEOUT})'
    )

    parser.add_argument(
        '--no-headless',
        action='store_true',
        help='Run browser in visible mode (useful for debugging)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )

    parser.add_argument(
        '--quiet', '-q',
        action='store_true',
        help='Suppress output except errors'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        default=None,
        help='Also write logs to this file'
    )

    return parser.parse_args()


def validate_url(url: str) -> str:
    """
    Validate and normalize the input URL.

    Args:
        url: URL string to validate

    Returns:
        Normalized URL string

    Raises:
        ValueError: If URL is invalid
    """
    if not url.startswith(('http://', 'https://', 'file://')):
        url = 'https://' + url

    parsed = urlparse(url)
    if not parsed.netloc and parsed.scheme != 'file':
        raise ValueError(f"Invalid URL: {url}")

    return url


def print_banner() -> None:
    """Print the application banner."""
    banner = """
╔═══════════════════════════════════════════════════════════════╗
║                     ELEMENT CLONER v1.0                       ║
║          Style-frozen element capture and export              ║
╚═══════════════════════════════════════════════════════════════╝
    """
    print_status(banner, "bold cyan")


def print_summary(session: ClonerSession) -> None:
    print("\n" + "=" * 60)
    print_success("CAPTURE SUMMARY")
    print("=" * 60)
    print(f"  Items captured:    {len(session.capture.items)}")
    print(f"  Assets embedded:   {len(session.assets)}")
    print(f"  Assets failed:     {len(session.assets.failed)}")
    print("=" * 60 + "\n")


async def capture(session: ClonerSession, args: argparse.Namespace) -> bool:
    """
    Run one capture and export it.

    Returns:
        True when a document was exported
    """
    if args.selector:
        node_id = await session.picker.select(args.selector)
        if node_id is None:
            raise ElementClonerError(f"No element matches {args.selector}")

    if args.elements:
        ack = await session.dispatch(Action.EXPORT_ELEMENTS)
        if not ack.success:
            raise ElementClonerError(ack.error)
        return bool(ack.data.get('exported'))

    ack = await session.dispatch(Action.START_SCRAPE, {'speed': args.speed, 'direction': args.direction})
    if not ack.success:
        raise ElementClonerError(ack.error)

    if args.speed > 0:
        await asyncio.sleep(args.duration)
    else:
        await session.capture.wait()
    await session.dispatch(Action.STOP_SCRAPE)

    if not args.quiet:
        print_summary(session)

    return await session.export_captured() is not None


async def main() -> int:
    """
    Main entry point for the element cloner.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_arguments()

    log_level = logging.DEBUG if args.verbose else (logging.WARNING if args.quiet else logging.INFO)
    setup_logger(level=log_level, log_file=args.log_file)

    if not args.quiet:
        print_banner()

    try:
        url = validate_url(args.url)

        if not args.quiet:
            print_info(f"Target URL: {url}")
            print_info(f"Output: {args.output}")
            print_info(f"Target: {args.selector or 'document body'}")

        host = PlaywrightHost(timeout=args.timeout, headless=not args.no_headless)
        await host.open(url)

        async with ClonerSession(
            host,
            output_dir=args.output,
            settle_interval=args.settle,
            animate=False
        ) as session:
            exported = await capture(session, args)
            if not exported:
                print_warning("Nothing was exported")
                return 1
            print_success(f"Export written to: {session.exporter.last_path}")

        return 0

    except KeyboardInterrupt:
        print_error("\nCapture interrupted by user")
        return 1
    except ValueError as e:
        print_error(f"Invalid input: {e}")
        return 1
    except HostError as e:
        print_error(f"Could not load page: {e}")
        return 1
    except ElementClonerError as e:
        print_error(f"Error: {e}")
        return 1
    except Exception as e:
        print_error(f"Error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


def run() -> None:
    """Entry point wrapper for running as module."""
    sys.exit(asyncio.run(main()))


if __name__ == '__main__':
    run()
