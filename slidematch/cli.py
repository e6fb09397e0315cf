"""
Locate a slider-captcha piece inside its background and print the result as JSON.

Usage:
    slidematch piece.png background.png
    slidematch piece.png background.png --improved --confidence 0.4
    python -m slidematch.cli piece.png background.png
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from . import matcher
from .errors import SlideMatchError


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="slidematch",
        description="Find where a slider-captcha piece fits inside its background.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s media/cut1.png media/bg1.png
  %(prog)s media/cut1.png media/bg1.png --simple
  %(prog)s media/cut1.png media/bg1.png --improved -c 0.5
        """,
    )
    parser.add_argument("piece_path", help="Path to the puzzle piece image")
    parser.add_argument("background_path", help="Path to the background image")
    parser.add_argument(
        "--simple",
        action="store_true",
        help="Skip cropping the piece's transparent border",
    )
    parser.add_argument(
        "--improved",
        action="store_true",
        help="Use adaptive edge thresholds and the density-filtered matcher",
    )
    parser.add_argument(
        "-c",
        "--confidence",
        type=float,
        default=matcher.DEFAULT_CONFIDENCE_THRESHOLD,
        help="Confidence threshold for --improved (0.0-1.0, default: %(default)s)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log pipeline decisions to stderr",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s"
        )

    try:
        if args.improved and args.simple:
            bbox = matcher.improved_simple_slide_match_with_path(
                args.piece_path, args.background_path, args.confidence
            )
        elif args.improved:
            bbox = matcher.improved_slide_match_with_path(
                args.piece_path, args.background_path, args.confidence
            )
        elif args.simple:
            bbox = matcher.simple_slide_match_with_path(
                args.piece_path, args.background_path
            )
        else:
            bbox = matcher.slide_match_with_path(args.piece_path, args.background_path)
    except (SlideMatchError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(bbox.to_json())
    return 0


if __name__ == "__main__":
    sys.exit(main())
