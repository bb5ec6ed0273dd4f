"""Shared fixtures: generated images and process-wide defaults reset"""

from pathlib import Path

import pytest
from PIL import Image

from imagickal import reset_defaults


@pytest.fixture(autouse=True)
def clean_defaults():
    reset_defaults()
    yield
    reset_defaults()


@pytest.fixture
def small_jpg(tmp_path: Path) -> Path:
    """13x10 JPEG"""
    path = tmp_path / "small.jpg"
    Image.new("RGB", (13, 10), (200, 30, 30)).save(path, format="JPEG")
    return path


@pytest.fixture
def anim_gif(tmp_path: Path) -> Path:
    """64x64 GIF with two frames"""
    path = tmp_path / "anim.gif"
    frames = [Image.new("RGB", (64, 64), color) for color in ((255, 0, 0), (0, 0, 255))]
    frames[0].save(path, format="GIF", save_all=True, append_images=frames[1:], duration=100)
    return path


@pytest.fixture
def small_svg(tmp_path: Path) -> Path:
    path = tmp_path / "small.svg"
    path.write_text(
        '<svg xmlns="http://www.w3.org/2000/svg" width="80" height="60" viewBox="0 0 80 60">'
        '<rect x="2" y="2" width="76" height="56" fill="#0f62fe"/>'
        "</svg>",
        encoding="utf-8",
    )
    return path
