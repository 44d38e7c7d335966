"""
Main entry point for the Event Poster Scanner.

Usage:
    python main.py --image path/to/poster.jpg --output calendars/
    python main.py --camera --api-key YOUR_CLAUDE_API_KEY
"""

import asyncio
import argparse
import json
import logging
import sys
from pathlib import Path

from poster_scanner import PosterScanner, ScannerConfig, build_scanner
from poster_scanner.data_models import session_events, session_title
from poster_scanner.downloads import DirectoryDownloadSink
from poster_scanner.image_source import CameraImageSource, FileImageSource
from poster_scanner.state import ReviewFlag, ScanPhase


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler('poster_scanner.log', encoding='utf-8')
        ]
    )


def print_session(scanner: PosterScanner) -> None:
    """Print a summary of the extracted session."""
    state = scanner.state
    session = state.session

    print(f"✅ Extracted: {session_title(session)}")
    for index, event in enumerate(session_events(session), start=1):
        print(f"  {index}. {event.title}")
        print(f"     📅 {event.date} {event.start_time}-{event.end_time}")
        print(f"     📍 {event.location}")

    if state.review == ReviewFlag.MANUAL_ENTRY_REQUIRED:
        print("✏️  Manual entry required")
    elif state.review == ReviewFlag.NEEDS_REVIEW:
        print("🔍 Please review the extracted details")

    if state.notice:
        print(f"ℹ️  {state.notice}")


async def check_api_key(scanner: PosterScanner) -> bool:
    """
    Validate the Claude API key before scanning.

    An unusable key drops the remote tier, so scans go straight to
    heuristic extraction.

    Returns:
        True if the remote tier is available
    """
    if scanner.remote_extractor is None:
        return False

    if not await scanner.remote_extractor.validate_api_key():
        print("⚠️  Claude API key could not be validated, using heuristic extraction only")
        scanner.remote_extractor = None
        return False

    return True


async def scan_poster(scanner: PosterScanner, args: argparse.Namespace) -> bool:
    """
    Scan one poster and export it.

    Args:
        scanner: Configured scanner
        args: Parsed command line arguments

    Returns:
        True if a calendar file was written
    """
    if args.camera is not None:
        source = CameraImageSource(args.camera)
        print(f"\nScanning from camera {args.camera}")
    else:
        source = FileImageSource(args.image)
        print(f"\nScanning: {Path(args.image).name}")
    print("-" * 50)

    try:
        state = await scanner.scan(source)
    finally:
        source.release()

    if state.phase != ScanPhase.READY_FOR_EDIT:
        print(f"❌ Scan failed: {state.notice}")
        return False

    print_session(scanner)

    if args.json:
        json_file = Path(args.output) / f"{Path(args.image or 'camera').stem}_session.json"
        json_file.parent.mkdir(parents=True, exist_ok=True)
        with open(json_file, 'w', encoding='utf-8') as f:
            json.dump(state.session.to_dict(), f, ensure_ascii=False, indent=2)
        print(f"💾 Session saved to: {json_file}")

    export = scanner.export()
    if export is None:
        print(f"❌ {scanner.state.notice}")
        return False

    print(f"📆 Calendar saved as: {Path(args.output) / export.filename}")
    return True


async def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Event Poster Scanner - Turn event posters into calendar files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --image poster.jpg --api-key sk-ant-...
  python main.py --image festival.png --output calendars/ --timezone Europe/Berlin
  python main.py --camera --no-remote --verbose
        """
    )

    input_group = parser.add_mutually_exclusive_group(required=True)
    input_group.add_argument('--image', type=str, help='Poster image to scan')
    input_group.add_argument('--camera', type=int, nargs='?', const=0,
                             help='Capture the poster from a camera (default device 0)')

    parser.add_argument('--api-key', type=str,
                        help='Claude API key (or set CLAUDE_API_KEY environment variable)')
    parser.add_argument('--output', type=str, default='.',
                        help='Output directory for calendar files')
    parser.add_argument('--timezone', type=str,
                        help='Time zone of the event times (default: local)')
    parser.add_argument('--no-remote', action='store_true',
                        help='Skip Claude and use heuristic extraction only')
    parser.add_argument('--json', action='store_true',
                        help='Also save the extracted session as JSON')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable verbose logging')

    args = parser.parse_args()

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    try:
        config = ScannerConfig.from_env(api_key=args.api_key, timezone=args.timezone)
        if args.no_remote:
            config = config.model_copy(update={"api_key": None})

        scanner = build_scanner(config, DirectoryDownloadSink(args.output))
        await check_api_key(scanner)

        if not await scan_poster(scanner, args):
            sys.exit(1)

        print("\n🎉 Scan complete!")

    except KeyboardInterrupt:
        print("\n⏹️  Scan interrupted by user")
        sys.exit(1)
    except ValueError as e:
        logger.error(f"Error: {e}")
        print(f"❌ Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
