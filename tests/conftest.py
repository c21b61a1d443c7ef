import io
import logging
import os
import shutil
import stat
import sys
from pathlib import Path

import pytest
import svgwrite
from PIL import Image

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def get_fixture(name: str) -> str:
    """Get a fixture by name."""
    return os.path.join(os.path.dirname(__file__), "fixtures", name)


def has_program(name: str) -> bool:
    """Check if an external program is installed."""
    return shutil.which(name) is not None


def png_bytes(size: tuple[int, int] = (4, 4), color: str = "red") -> bytes:
    """Encode a solid PNG image."""
    with io.BytesIO() as output:
        Image.new("RGBA", size, color).save(output, format="PNG")
        return output.getvalue()


def svg_bytes(size: tuple[int, int] = (16, 16)) -> bytes:
    """Build a small SVG document with explicit width and height."""
    drawing = svgwrite.Drawing(size=size)
    drawing.add(drawing.rect(insert=(0, 0), size=size, fill="red"))
    return drawing.tostring().encode("utf-8")


VIEWBOX_ONLY_SVG = b"""<?xml version="1.0" encoding="UTF-8"?>
<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 100 100">
    <circle cx="50" cy="50" r="40" fill="blue"/>
</svg>"""


# Pytest markers for tests against real conversion programs
requires_rsvg_convert = pytest.mark.skipif(
    not has_program("rsvg-convert"),
    reason="rsvg-convert not installed",
)

requires_imagemagick = pytest.mark.skipif(
    not (has_program("magick") or has_program("convert")),
    reason="ImageMagick not installed",
)

requires_posix_shell = pytest.mark.skipif(
    sys.platform == "win32",
    reason="Fake programs are POSIX shell scripts",
)


class FakePrograms:
    """Directory of fake conversion programs that is the whole of PATH.

    Each program records its arguments, standard input and environment next
    to itself, writes canned standard output and standard error, and exits
    with the given status.
    """

    def __init__(self, bindir: Path) -> None:
        self.bindir = bindir

    def install(
        self,
        name: str,
        stdout: bytes = b"",
        stderr: str = "",
        exit_code: int = 0,
        sleep: int = 0,
        sleep_in_child: bool = False,
    ) -> Path:
        (self.bindir / f"{name}.stdout").write_bytes(stdout)
        (self.bindir / f"{name}.stderr").write_text(stderr)
        base = f'"{self.bindir}/{name}'
        script = [
            "#!/bin/sh",
            "PATH=/usr/bin:/bin",
            f"printf '%s\\n' \"$@\" > {base}.args\"",
            f"env > {base}.env\"",
            f"cat > {base}.stdin\"",
            f"cat {base}.stderr\" >&2",
            f"cat {base}.stdout\"",
        ]
        if sleep and sleep_in_child:
            # The shell stays the direct child; sleep inherits its pipes
            script.append(f"sleep {sleep}")
        elif sleep:
            script.append(f"exec sleep {sleep}")
        script.append(f"exit {exit_code}")
        path = self.bindir / name
        path.write_text("\n".join(script) + "\n")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    def was_run(self, name: str) -> bool:
        return (self.bindir / f"{name}.args").exists()

    def args(self, name: str) -> list[str]:
        return (self.bindir / f"{name}.args").read_text().splitlines()

    def stdin(self, name: str) -> bytes:
        return (self.bindir / f"{name}.stdin").read_bytes()

    def env(self, name: str) -> dict[str, str]:
        lines = (self.bindir / f"{name}.env").read_text().splitlines()
        return dict(line.split("=", 1) for line in lines if "=" in line)


@pytest.fixture
def fake_programs(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> FakePrograms:
    """Replace PATH with an empty directory for fake programs."""
    bindir = tmp_path / "bin"
    bindir.mkdir()
    monkeypatch.setenv("PATH", str(bindir))
    return FakePrograms(bindir)


class NonSeekable(io.RawIOBase):
    """Forward-only stream, like a pipe. Counts the bytes read from it."""

    def __init__(self, data: bytes) -> None:
        super().__init__()
        self._data = io.BytesIO(data)
        self.bytes_read = 0

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:  # type: ignore[no-untyped-def]
        data = self._data.read(len(buffer))
        buffer[: len(data)] = data
        self.bytes_read += len(data)
        return len(data)
