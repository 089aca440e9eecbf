from __future__ import annotations

from pathlib import Path
import logging
import os
import shutil
import subprocess
import sys
from typing import Iterable

from PIL import Image

from .errors import EncodeError, NonImageCopyError
from .models import (
    IMAGE_EXTENSIONS,
    WEBP_EXTENSIONS,
    WILDCARD,
    ConvertOptions,
    ConvertResult,
    build_glob,
    expand_globs,
)

logger = logging.getLogger(__name__)

WINDOWS_CREATIONFLAGS = (
    getattr(subprocess, "CREATE_NO_WINDOW", 0) if sys.platform.startswith("win") else 0
)
CWEBP_ENV = "WEBPCONVERT_CWEBP"
_TOOL_CACHE: dict[str, str | None] = {}


def convert_files(
    patterns: Iterable[str],
    base_dir: Path,
    target: Path,
    options: ConvertOptions,
) -> list[ConvertResult]:
    results = []
    for source in expand_globs(patterns):
        results.append(convert_file(source, base_dir, target, options))
    if results and not options.mute:
        logger.info(format_summary(results))
    return results


def convert_file(
    source: Path,
    base_dir: Path,
    target: Path,
    options: ConvertOptions,
) -> ConvertResult:
    output = build_output_path(source, base_dir, target, options)
    output.parent.mkdir(parents=True, exist_ok=True)
    original_size = source.stat().st_size
    engine = encode_webp(source, output, options.quality)
    if not output.exists():
        raise EncodeError(source, engine)
    result = ConvertResult(source, output, original_size, output.stat().st_size, engine)
    if not options.mute:
        logger.info(format_result(result, base_dir))
    return result


def build_output_path(
    source: Path,
    base_dir: Path,
    target: Path,
    options: ConvertOptions,
) -> Path:
    name = f"{options.prefix}{source.stem}{options.suffix}.webp"
    resolved = source.resolve()
    base = base_dir.resolve()
    if resolved.is_relative_to(base):
        return target / resolved.relative_to(base).parent / name
    return target / name


def encode_webp(source: Path, output: Path, quality: int) -> str:
    cwebp = get_cwebp_executable()
    if cwebp and run_cwebp(cwebp, source, output, quality):
        return "cwebp"
    if cwebp:
        logger.debug("cwebp failed on %s, falling back to Pillow", source)
    with Image.open(source) as image:
        if image.mode not in {"RGB", "RGBA"}:
            has_alpha = image.mode in {"LA", "PA", "RGBa"} or "transparency" in image.info
            image = image.convert("RGBA" if has_alpha else "RGB")
        image.save(output, format="WEBP", quality=quality)
    return "Pillow"


def run_cwebp(cwebp: str, source: Path, output: Path, quality: int) -> bool:
    command = [
        cwebp,
        "-quiet",
        "-q",
        str(max(0, min(100, quality))),
        str(source),
        "-o",
        str(output),
    ]
    result = run_command(command)
    return result.returncode == 0 and output.exists()


def get_cwebp_executable() -> str | None:
    if CWEBP_ENV in _TOOL_CACHE:
        return _TOOL_CACHE[CWEBP_ENV]
    configured = os.environ.get(CWEBP_ENV)
    if configured is not None:
        resolved = shutil.which(configured) if configured else None
    else:
        resolved = shutil.which("cwebp")
    logger.debug("cwebp executable: %s", resolved or "not found, using Pillow")
    _TOOL_CACHE[CWEBP_ENV] = resolved
    return resolved


def clear_tool_cache() -> None:
    _TOOL_CACHE.clear()


def run_command(command: list[str]) -> subprocess.CompletedProcess[bytes]:
    return subprocess.run(command, capture_output=True, creationflags=WINDOWS_CREATIONFLAGS)


def copy_non_images(source_root: Path, target: Path) -> list[Path]:
    """Copy everything that is neither a jpg/png nor a webp into ``target``.

    Directories are mirrored too, so empty folders survive. Any failure while
    listing or copying is reported as :class:`NonImageCopyError`.
    """
    root = source_root.resolve()
    target_root = target.resolve()
    nested_target = target_root.is_relative_to(root)
    include = [str(root / WILDCARD)]
    excludes = [build_glob(root, ext) for ext in IMAGE_EXTENSIONS + WEBP_EXTENSIONS]
    copied = []
    current = root
    try:
        for path in expand_globs(include, excludes, include_dirs=True):
            current = path
            if nested_target and path.resolve().is_relative_to(target_root):
                continue
            destination = target / path.relative_to(root)
            if path.is_dir():
                destination.mkdir(parents=True, exist_ok=True)
                continue
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(path, destination)
            copied.append(destination)
    except Exception as exc:
        raise NonImageCopyError(current, exc) from exc
    logger.debug("copied %d non-image file(s) to %s", len(copied), target)
    return copied


def format_size(size: int) -> str:
    sign = "-" if size < 0 else ""
    value = float(abs(size))
    for unit in ("B", "kB", "MB", "GB"):
        if value < 999.5 or unit == "GB":
            break
        value /= 1000
    return f"{sign}{value:.3g} {unit}"


def format_percent(saved: int, original: int) -> str:
    percent = saved / original * 100 if original else 0.0
    return f"{percent:.1f}".removesuffix(".0")


def format_result(result: ConvertResult, base_dir: Path) -> str:
    resolved = result.source.resolve()
    base = base_dir.resolve()
    name = resolved.relative_to(base) if resolved.is_relative_to(base) else result.source.name
    if result.saved > 0:
        message = f"saved {format_size(result.saved)} - {format_percent(result.saved, result.original_size)}%"
    else:
        message = "already optimized"
    return f"✔ {name} ({message})"


def format_summary(results: list[ConvertResult]) -> str:
    count = len(results)
    original = sum(result.original_size for result in results)
    saved = sum(result.saved for result in results)
    label = "image" if count == 1 else "images"
    return f"Minified {count} {label} (saved {format_size(saved)} - {format_percent(saved, original)}%)"
