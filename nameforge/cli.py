#!/usr/bin/env python3
"""
Command-line interface for nameforge.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .cache import default_cache_path
from .content import CaseStyle
from .core import NamingResult, PhotoRenamer
from .exceptions import InputPathError
from .logging_config import setup_logger
from .naming import NamingConfig


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer: {value}")
    return number


def _case_style(value: str) -> CaseStyle:
    try:
        return CaseStyle.parse(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nameforge",
        description="Rename images by context: capture date plus place or content",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  nameforge --dry-run ~/Pictures/trip
  nameforge --organize-by-date ~/Pictures/inbox
  nameforge --ai-content --ai-case snake_case --ai-max-chars 24 photo.jpg

Files are renamed as: YYYY-MM-DD_<Place>.ext
The place comes from GPS data; without it the AI description (if enabled)
is used, and NoGPS / UnknownPlace otherwise.
        """
    )

    parser.add_argument('input', type=Path, help='Image file or folder to process')
    parser.add_argument('-d', '--dry-run', action='store_true',
                        help='Show what would be renamed without actually renaming files')
    parser.add_argument('-o', '--organize-by-date', action='store_true',
                        help='Move photos into YYYY-MM-DD folders')
    parser.add_argument('--full-timestamp', action='store_true',
                        help='Use YYYY-MM-DD_HH-MM-SS instead of YYYY-MM-DD')
    parser.add_argument('--no-date', action='store_true',
                        help='Leave the date out of the filename')
    parser.add_argument('--use-file-date', action='store_true',
                        help='Use the file modification time even when EXIF has a date')
    parser.add_argument('--max-images', type=_positive_int, default=None,
                        help='Process at most this many images')

    ai = parser.add_argument_group('AI content analysis (Ollama)')
    ai.add_argument('--ai-content', action='store_true',
                    help='Describe images with a local vision model when GPS gives no place')
    ai.add_argument('--ai-model', default='llava:13b', help='Ollama model (default: %(default)s)')
    ai.add_argument('--ai-max-chars', type=_positive_int, default=20,
                    help='Maximum length of the description (default: %(default)s)')
    ai.add_argument('--ai-case', type=_case_style, default=CaseStyle.LOWERCASE,
                    metavar='{' + ','.join(style.value for style in CaseStyle) + '}',
                    help='Case style for the description (default: lowercase)')
    ai.add_argument('--ai-language', default='English',
                    help='Language of the description (default: %(default)s)')

    parser.add_argument('--cache-file', type=Path, default=None,
                        help='Location cache file (default: $NAMEFORGE_CACHE or ~/.nameforge_cache.json)')
    parser.add_argument('-v', '--verbose', action='store_true', help='Show debug output')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def config_from_args(args: argparse.Namespace) -> NamingConfig:
    return NamingConfig(
        use_full_timestamp=args.full_timestamp,
        organize_by_date=args.organize_by_date,
        ai_enabled=args.ai_content,
        ai_model=args.ai_model,
        ai_max_chars=args.ai_max_chars,
        ai_case=args.ai_case,
        ai_language=args.ai_language,
        dry_run=args.dry_run,
        no_date=args.no_date,
        use_file_date=args.use_file_date,
        max_images=args.max_images,
    )


def print_config(input_path: Path, config: NamingConfig, cache_path: Path) -> None:
    print(f"NameForge v{__version__}")
    print("-" * 50)
    print(f"Input:         {input_path}")
    print(f"Mode:          {'DRY RUN' if config.dry_run else 'RENAME FILES'}")
    print(f"Date folders:  {'ENABLED' if config.organize_by_date else 'DISABLED'}")
    print(f"Location cache: {cache_path}")
    if config.ai_enabled:
        print("AI analysis:   ENABLED")
        print(f"  Model:       {config.ai_model}")
        print(f"  Max chars:   {config.ai_max_chars}")
        print(f"  Case:        {config.ai_case.value}")
        print(f"  Language:    {config.ai_language}")
    else:
        print("AI analysis:   DISABLED (using GPS location data only)")
    print("-" * 50)


def print_report(results: List[NamingResult], dry_run: bool) -> None:
    action = 'WOULD RENAME' if dry_run else 'RENAMED'
    print()
    for result in results:
        if not result.ok:
            print(f"FAILED: {result.original_path.name}: {result.error}")
        elif result.unchanged:
            print(f"UNCHANGED: {result.original_path.name}")
        else:
            print(f"{action}: {result.original_path} -> {result.target_path}")

    failed = [r for r in results if not r.ok]
    fallback = [r for r in results if r.ok and r.fallbacks]
    print()
    print(f"{'Dry run' if dry_run else 'Processing'} completed: "
          f"{len(results) - len(failed)} ok, {len(failed)} failed")

    if fallback:
        print(f"\n{len(fallback)} file(s) named with fallbacks:")
        for result in fallback:
            print(f"  {result.applied_name} ({', '.join(result.fallbacks)})")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the nameforge command."""
    args = build_parser().parse_args(argv)
    setup_logger(level="DEBUG" if args.verbose else None)

    config = config_from_args(args)
    cache_path = args.cache_file or default_cache_path()
    print_config(args.input, config, cache_path)

    renamer = PhotoRenamer(config, cache_path=cache_path)
    try:
        results = renamer.process_folder(args.input)
    except InputPathError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n\nOperation cancelled by user.", file=sys.stderr)
        return 1

    print_report(results, config.dry_run)
    return 0


if __name__ == '__main__':
    sys.exit(main())
