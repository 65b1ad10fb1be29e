#!/usr/bin/env python3
"""Result Screen Score Extraction - Unified CLI Entry Point.

This module provides a command-line interface for extracting score records
from recorded play sessions. It routes commands to the score_ocr package.

Usage:
    python main.py extract session.mp4 --settings settings.json --catalog catalog.json --play-style SP
    python main.py read-frame screen.png --settings settings.json --catalog catalog.json
    python main.py init-settings -o settings.json

For detailed help on each command:
    python main.py extract --help
    python main.py read-frame --help
    python main.py init-settings --help
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional


def get_output_path(input_path: str, suffix: str, explicit_output: Optional[str] = None) -> str:
    """Resolve where a command writes its result.

    Without ``-o`` the file goes to ``output/``, named after the input plus a
    timestamp, e.g. ``output/session_scores_20250111_143052.json``.

    Args:
        input_path: Recording or image the output belongs to.
        suffix: Name suffix including the extension, e.g. '_scores.json'.
        explicit_output: Path given on the command line.
    """
    if explicit_output:
        return explicit_output

    from datetime import datetime
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")

    stem, dot, extension = suffix.rpartition('.')
    name = f"{stem}_{stamp}.{extension}" if dot else f"{suffix}_{stamp}"

    output_dir = Path('output')
    output_dir.mkdir(exist_ok=True)
    return str(output_dir / f"{Path(input_path).stem}{name}")


def ensure_output_dir(output_path: str) -> None:
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)


def check_output_file_exists(output_path: str) -> bool:
    """Ask before replacing an existing result file.

    Returns:
        True when it is fine to write ``output_path``.

    Raises:
        SystemExit: When the user keeps the existing file or quits.
    """
    if not Path(output_path).exists():
        return True

    print(f"\n⚠️  {output_path} already exists")
    print("  [U] Use it as is and skip extraction")
    print("  [O] Overwrite it")
    print("  [Q] Quit")

    while True:
        choice = input("\nChoice (U/O/Q): ").strip().upper()
        if choice == 'O':
            return True
        if choice == 'U':
            print(f"✓ Keeping {output_path}")
            raise SystemExit(0)
        if choice == 'Q':
            raise SystemExit(0)
        print("Please enter U, O or Q.")


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for score extraction.

    Args:
        argv: Command-line arguments. If None, uses sys.argv.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        description='Result Screen Score Extraction - Read score records from play recordings',
        epilog='For detailed help: python main.py <command> --help'
    )

    subparsers = parser.add_subparsers(
        dest='command',
        title='Available Commands',
        description='Select a command to run',
        help='Use <command> --help for more information'
    )

    # =========================================================================
    # EXTRACT COMMAND
    # =========================================================================
    extract_parser = subparsers.add_parser(
        'extract',
        help='Extract every result screen of a recording',
        description='Seek from result screen to result screen and commit the scores read from each'
    )
    extract_parser.add_argument(
        'video',
        help='Path to video file'
    )
    extract_parser.add_argument(
        '-o', '--output',
        help='Output file path (.json or .csv, default: output/{video_stem}_scores_YYYYMMDD_HHMMSS.json)'
    )
    extract_parser.add_argument(
        '--settings',
        required=True,
        help='Path to settings JSON (perspective, detection, regions)'
    )
    extract_parser.add_argument(
        '--catalog',
        required=True,
        help='Path to music catalog JSON'
    )
    extract_parser.add_argument(
        '--play-style',
        choices=['SP', 'DP'],
        default='SP',
        help='Play style recorded in every record (default: SP)'
    )
    extract_parser.add_argument(
        '--difficulty',
        choices=['B', 'N', 'H', 'A', 'L'],
        help='Force a difficulty instead of classifying it by color'
    )
    extract_parser.add_argument(
        '--include-first',
        action='store_true',
        help='Also read the first frame of the video before seeking'
    )
    _add_engine_arguments(extract_parser)

    # =========================================================================
    # READ FRAME COMMAND
    # =========================================================================
    read_parser = subparsers.add_parser(
        'read-frame',
        help='Read the regions of a single still frame',
        description='Run region extraction and correction on one image and print the readings'
    )
    read_parser.add_argument(
        'image',
        help='Path to image file (screenshot of a result screen)'
    )
    read_parser.add_argument(
        '--settings',
        help='Path to settings JSON (default: built-in result screen layout)'
    )
    read_parser.add_argument(
        '--catalog',
        help='Path to music catalog JSON (enables title suggestions)'
    )
    read_parser.add_argument(
        '--top',
        type=int,
        default=5,
        help='Number of title suggestions to print (default: 5)'
    )
    _add_engine_arguments(read_parser)

    # =========================================================================
    # INIT SETTINGS COMMAND
    # =========================================================================
    init_parser = subparsers.add_parser(
        'init-settings',
        help='Write the default settings document',
        description='Write the built-in result screen layout as a settings JSON to edit'
    )
    init_parser.add_argument(
        '-o', '--output',
        default='settings.json',
        help='Output file path (default: settings.json)'
    )
    init_parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Print debug logging'
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    configure_logging(args.verbose)

    try:
        if args.command == 'extract':
            return cmd_extract(args)
        elif args.command == 'read-frame':
            return cmd_read_frame(args)
        elif args.command == 'init-settings':
            return cmd_init_settings(args)
        else:
            print(f"Error: Unknown command '{args.command}'")
            return 1

    except KeyboardInterrupt:
        print("\n\nOperation cancelled by user")
        return 130
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


def _add_engine_arguments(subparser: argparse.ArgumentParser) -> None:
    subparser.add_argument(
        '--engine',
        choices=['tesseract', 'paddleocr'],
        help='OCR engine (default: SCORE_OCR_ENGINE or tesseract)'
    )
    subparser.add_argument(
        '--frame-rate',
        type=float,
        help='Seek step in frames per second (default: SCORE_OCR_FRAME_RATE or 60)'
    )
    subparser.add_argument(
        '--variants',
        type=int,
        help='Threshold variants per region (default: SCORE_OCR_VARIANT_COUNT or 3)'
    )
    subparser.add_argument(
        '--variant-step',
        type=int,
        help='Threshold offset between variants (default: SCORE_OCR_VARIANT_STEP or 10)'
    )
    subparser.add_argument(
        '--gpu',
        action='store_true',
        help='Use GPU acceleration (for PaddleOCR)'
    )
    subparser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Print detailed progress information'
    )


def _runtime_config(args: argparse.Namespace):
    from src.score_ocr.config import get_runtime_config

    return get_runtime_config(
        engine=args.engine,
        frame_rate=args.frame_rate,
        variant_count=args.variants,
        variant_step=args.variant_step,
    )


def cmd_extract(args: argparse.Namespace) -> int:
    """Execute the full extraction command.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Exit code (0 for success).
    """
    from src.score_ocr import ScoreExtractionPipeline, SessionState
    from src.score_ocr.correction import load_catalog
    from src.score_ocr.settings import load_settings
    from src.score_ocr.utils import VideoFrameSource

    config = _runtime_config(args)

    output_path = get_output_path(args.video, '_scores.json', args.output)
    ensure_output_dir(output_path)
    check_output_file_exists(output_path)

    settings = load_settings(args.settings)
    if not settings.selections:
        print(f"Error: no usable selections in {args.settings}")
        return 1

    state = SessionState(
        settings=settings,
        catalog=load_catalog(args.catalog),
        play_style=args.play_style,
        difficulty=args.difficulty,
        frame_rate=config.frame_rate,
    )
    pipeline = ScoreExtractionPipeline.from_config(config, use_gpu=args.gpu)

    print(f"Loaded {len(settings.selections)} regions and {len(state.catalog)} catalog entries")

    with VideoFrameSource(args.video) as source:
        info = source.get_info()
        print(f"Video: {info['duration_formatted']} @ {info['fps']:.1f} fps ({info['width']}x{info['height']})")
        summary = asyncio.run(_run_with_cancellation(pipeline, source, state, args.include_first))

    state.store.save(output_path)

    print(f"\n✓ Extraction complete ({summary.outcome.value if summary.outcome else 'stopped'})")
    print(f"  Screens read: {summary.screens}")
    print(f"  Committed:    {summary.committed}")
    print(f"  Rejected:     {summary.rejected}")
    print(f"  Duplicates:   {summary.duplicates}")
    print(f"  OCR failures: {summary.failed}")
    print(f"  Results saved to: {output_path}")

    return 0 if summary.outcome is not None else 1


async def _run_with_cancellation(pipeline, source, state, include_current: bool):
    """Run the pipeline; Ctrl+C asks the detector to stop at the next step."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, state.cancel_token.cancel)
    except NotImplementedError:
        # Windows event loops have no signal handlers; Ctrl+C then raises KeyboardInterrupt
        pass

    try:
        return await pipeline.run(source, state, include_current=include_current)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except NotImplementedError:
            pass


def cmd_read_frame(args: argparse.Namespace) -> int:
    """Execute single frame extraction.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Exit code (0 for success).
    """
    from src.score_ocr import ScoreExtractionPipeline, SessionState
    from src.score_ocr.correction import load_catalog
    from src.score_ocr.models import BilingualText, ErrorReading
    from src.score_ocr.settings import default_settings, load_settings
    from src.score_ocr.utils import load_image

    config = _runtime_config(args)
    settings = load_settings(args.settings) if args.settings else default_settings()
    state = SessionState(
        settings=settings,
        catalog=load_catalog(args.catalog) if args.catalog else (),
        frame_rate=config.frame_rate,
    )
    pipeline = ScoreExtractionPipeline.from_config(config, use_gpu=args.gpu)

    frame = pipeline.rectify(load_image(args.image), state)
    reading = asyncio.run(pipeline.read_frame(frame, state))

    print(f"\nRegions ({frame.shape[1]}x{frame.shape[0]} rectified frame):")
    for label, value in reading.readings.items():
        if isinstance(value, BilingualText):
            print(f"  {label:<10} eng='{value.eng}' jpn='{value.jpn}'")
        elif isinstance(value, ErrorReading):
            print(f"  {label:<10} {value.text} ({value.message})")
        else:
            print(f"  {label:<10} '{value.text}'")

    if reading.numeric:
        print("\nCorrected values:")
        for name, text in reading.numeric.items():
            print(f"  {name:<10} {text}")

    if reading.categories:
        print("\nCategories:")
        for name, category in reading.categories.items():
            print(f"  {name:<10} {category}")

    if reading.suggestions:
        print("\nTitle suggestions:")
        for suggestion in reading.suggestions[:args.top]:
            print(f"  [{suggestion.catalog_id}] {suggestion.title} / {suggestion.artist} "
                  f"(distance {suggestion.distance})")

    return 1 if reading.failed else 0


def cmd_init_settings(args: argparse.Namespace) -> int:
    """Write the default settings document.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Exit code (0 for success).
    """
    from src.score_ocr.settings import default_settings, save_settings

    ensure_output_dir(args.output)
    check_output_file_exists(args.output)

    settings = default_settings()
    save_settings(settings, args.output)

    print(f"✓ Wrote {len(settings.selections)} default regions to {args.output}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
