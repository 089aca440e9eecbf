from __future__ import annotations

from pathlib import Path


class WebpConvertError(Exception):
    pass


class EncodeError(WebpConvertError):
    def __init__(self, source: Path, engine: str) -> None:
        super().__init__(f"{engine} produced no output for {source}")
        self.source = source
        self.engine = engine


class NonImageCopyError(WebpConvertError):
    """Copying a non-image file failed. Never fatal for a run."""

    def __init__(self, source: Path, cause: BaseException) -> None:
        super().__init__(f"failed to copy {source}: {cause}")
        self.source = source
        self.cause = cause
