from __future__ import annotations

from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from pathlib import Path, PurePath
import os
from typing import Iterable, Iterator

DEFAULT_QUALITY = 80
WILDCARD = "**/*"
PNG_EXTENSIONS = ("png", "PNG")
JPG_EXTENSIONS = ("jpg", "JPG", "jpeg", "JPEG")
WEBP_EXTENSIONS = ("webp", "WEBP")
IMAGE_EXTENSIONS = PNG_EXTENSIONS + JPG_EXTENSIONS
EXCLUDE_PREFIX = "!"


@dataclass(frozen=True)
class ConvertOptions:
    prefix: str = ""
    suffix: str = ""
    quality: int = DEFAULT_QUALITY
    recursive: bool = False
    mute: bool = False


@dataclass(frozen=True)
class SourcePlan:
    source: Path
    target: Path
    base_dir: Path
    png_globs: tuple[str, ...]
    jpg_globs: tuple[str, ...]
    source_is_file: bool

    @property
    def source_root(self) -> Path:
        if self.source_is_file:
            return self.source.parent
        return self.source

    @property
    def copies_non_images(self) -> bool:
        if self.source_is_file:
            return False
        return self.target.resolve() != self.source_root.resolve()


@dataclass(frozen=True)
class ConvertResult:
    source: Path
    output: Path
    original_size: int
    converted_size: int
    engine: str

    @property
    def saved(self) -> int:
        return self.original_size - self.converted_size


@dataclass
class RunResult:
    converted: list[ConvertResult] = field(default_factory=list)
    copied: list[Path] = field(default_factory=list)
    copy_error: Exception | None = None


def get_ext(path: str | os.PathLike[str]) -> str:
    """Return the extension token of the last path segment, or "" if it has none.

    The check is syntactic: "archive" and ".hidden" have no extension while
    "my.dir" does, whatever is actually on disk.
    """
    parts = PurePath(os.fspath(path)).name.split(".")
    if len(parts) < 2 or not parts[0]:
        return ""
    return parts[-1]


def is_file(path: str | os.PathLike[str]) -> bool:
    return bool(get_ext(path))


def build_glob(root: Path, extension: str) -> str:
    return str(root.resolve() / f"{WILDCARD}.{extension}")


def build_plan(source: str | None = None, target: str | None = None) -> SourcePlan:
    source = source or "."
    source_is_file = is_file(source)
    png_globs: tuple[str, ...] = ()
    jpg_globs: tuple[str, ...] = ()
    if source_is_file:
        extension = get_ext(source).lower()
        if extension == "png":
            png_globs = (source,)
        elif extension in {"jpg", "jpeg"}:
            jpg_globs = (source,)
        base_dir = Path(source).parent
    else:
        base_dir = Path(source)
        # both cases are listed for case-sensitive filesystems
        png_globs = tuple(build_glob(base_dir, ext) for ext in PNG_EXTENSIONS)
        jpg_globs = tuple(build_glob(base_dir, ext) for ext in JPG_EXTENSIONS)
    target_value = target or source or "."
    target_dir = Path(target_value)
    if is_file(target_value):
        target_dir = target_dir.parent
    return SourcePlan(
        source=Path(source),
        target=target_dir,
        base_dir=base_dir,
        png_globs=png_globs,
        jpg_globs=jpg_globs,
        source_is_file=source_is_file,
    )


def split_glob(pattern: str) -> tuple[Path, str] | None:
    parts = PurePath(pattern).parts
    if "**" not in parts:
        return None
    index = parts.index("**")
    return Path(*parts[:index]), parts[-1]


def matches_glob(path: Path, pattern: str) -> bool:
    split = split_glob(pattern)
    if split is None:
        return path.resolve() == Path(pattern).resolve()
    root, name_pattern = split
    try:
        relative = path.resolve().relative_to(root.resolve())
    except ValueError:
        return False
    if is_hidden(relative):
        return False
    return fnmatchcase(path.name.lower(), name_pattern.lower())


def is_hidden(relative: PurePath) -> bool:
    return any(part.startswith(".") for part in relative.parts)


def iter_glob(pattern: str, include_dirs: bool = False) -> Iterator[Path]:
    split = split_glob(pattern)
    if split is None:
        path = Path(pattern)
        if not path.is_file():
            raise FileNotFoundError(f"File not found with singular glob: {pattern}")
        yield path
        return
    root, name_pattern = split
    if not root.is_dir():
        return
    for path in sorted(root.rglob("*")):
        if is_hidden(path.relative_to(root)):
            continue
        if not path.is_file() and not (include_dirs and path.is_dir()):
            continue
        if fnmatchcase(path.name.lower(), name_pattern.lower()):
            yield path


def expand_globs(
    patterns: Iterable[str],
    excludes: Iterable[str] = (),
    include_dirs: bool = False,
) -> list[Path]:
    exclude_patterns = [pattern.removeprefix(EXCLUDE_PREFIX) for pattern in excludes]
    seen: set[str] = set()
    files = []
    for pattern in patterns:
        for path in iter_glob(pattern, include_dirs):
            key = os.path.normcase(str(path.resolve()))
            if key in seen:
                continue
            seen.add(key)
            if any(matches_glob(path, exclude) for exclude in exclude_patterns):
                continue
            files.append(path)
    return files
