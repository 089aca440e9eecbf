from __future__ import annotations

import argparse
import logging
import math
import sys

from . import __version__
from .compress import convert_files, copy_non_images
from .errors import NonImageCopyError
from .models import DEFAULT_QUALITY, ConvertOptions, RunResult, SourcePlan, build_plan

logger = logging.getLogger(__name__)

DESCRIPTION = "Convert jpg/png images in specified directory to webp"
EXAMPLES = [
    "webpconvert",
    "webpconvert sample-images",
    "webpconvert sample-images -q 50",
    'webpconvert sample-images --prefix="img-" --suffix="-compressed"',
    "webpconvert sample-images output",
    "webpconvert sample-images/KittenJPG.jpg",
]


def parse_quality(value: str) -> int:
    """Read a quality value the forgiving way: clamp to 0-100, fall back to 80."""
    if not value.strip():
        return 0
    try:
        number = float(value)
    except ValueError:
        return DEFAULT_QUALITY
    if not math.isfinite(number):
        return DEFAULT_QUALITY
    return round(max(0.0, min(100.0, number)))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="webpconvert",
        usage="%(prog)s [source] [target] [options]",
        description=DESCRIPTION,
        epilog="Examples:\n" + "\n".join(f"  {example}" for example in EXAMPLES),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("source", nargs="?", default=".", help="File or directory to convert.")
    parser.add_argument("target", nargs="?", default=None, help="Output directory. Defaults to [source].")
    parser.add_argument("-p", "--prefix", default="", help="Specify the prefix of output filename.")
    parser.add_argument("-s", "--suffix", default="", help="Specify the suffix of output filename.")
    parser.add_argument(
        "-q",
        "--quality",
        type=parse_quality,
        default=DEFAULT_QUALITY,
        help="Specify the quality of webp image. Lower values yield better compression but the least image quality.",
    )
    parser.add_argument(
        "-r",
        "--recursive",
        action="store_true",
        help="Include files in sub-folders. Will be ignored if the [source] is a file.",
    )
    parser.add_argument("-m", "--mute", action="store_true", help="Disable output messages.")
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(args)


def build_options(parsed: argparse.Namespace) -> ConvertOptions:
    return ConvertOptions(
        prefix=parsed.prefix,
        suffix=parsed.suffix,
        quality=parsed.quality,
        recursive=parsed.recursive,
        mute=parsed.mute,
    )


def configure_logging(mute: bool) -> None:
    logging.basicConfig(
        level=logging.ERROR if mute else logging.INFO,
        format="%(message)s",
        stream=sys.stderr,
    )


def run(plan: SourcePlan, options: ConvertOptions) -> RunResult:
    logger.debug("source=%s target=%s base=%s", plan.source, plan.target, plan.base_dir)
    result = RunResult()
    if plan.png_globs:
        result.converted += convert_files(plan.png_globs, plan.base_dir, plan.target, options)
    if plan.jpg_globs:
        result.converted += convert_files(plan.jpg_globs, plan.base_dir, plan.target, options)
    if plan.copies_non_images:
        try:
            result.copied = copy_non_images(plan.source_root, plan.target)
        except NonImageCopyError as exc:
            result.copy_error = exc
            if not options.mute:
                logger.error("%s", exc)
    return result


def main(argv: list[str] | None = None) -> int:
    parsed = parse_args(argv)
    options = build_options(parsed)
    configure_logging(options.mute)
    plan = build_plan(parsed.source, parsed.target)
    run(plan, options)
    return 0
