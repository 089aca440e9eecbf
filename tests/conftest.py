from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image

from webpconvert import compress

FORMATS = {".png": "PNG", ".jpg": "JPEG", ".jpeg": "JPEG"}


@pytest.fixture(autouse=True)
def pillow_only(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv(compress.CWEBP_ENV, "")
    compress.clear_tool_cache()
    yield
    compress.clear_tool_cache()


@pytest.fixture
def make_image():
    def _make(path: Path, size: tuple[int, int] = (48, 32), color=(200, 80, 40)) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        image_format = FORMATS[path.suffix.lower()]
        Image.new("RGB", size, color).save(path, format=image_format)
        return path

    return _make


@pytest.fixture
def make_text():
    def _make(path: Path, content: str = "hello\n") -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        return path

    return _make


def webp_files(root: Path) -> list[Path]:
    return sorted(path for path in root.rglob("*") if path.suffix.lower() == ".webp")
