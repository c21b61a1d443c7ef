"""Tests for stream conversion through external programs."""

import io
import os
import time
from unittest.mock import patch

import pytest
from PIL import Image

from imgconv import (
    ImgconvError,
    InvalidDimensionsError,
    MetricsUnavailableError,
    NoSuitableToolError,
    ResourceLimits,
    SubprocessError,
    SubprocessTimeoutError,
    UnsupportedFormatError,
    UnsupportedMediaError,
    convert,
    convert_with_aspect,
)
from imgconv.svg_metrics import read_svg_size
from imgconv.tools import ImageMagickTool
from tests.conftest import (
    PNG_SIGNATURE,
    VIEWBOX_ONLY_SVG,
    FakePrograms,
    NonSeekable,
    get_fixture,
    png_bytes,
    requires_imagemagick,
    requires_posix_shell,
    requires_rsvg_convert,
    svg_bytes,
)

pytestmark = requires_posix_shell


def jpeg_bytes(size: tuple[int, int]) -> bytes:
    with io.BytesIO() as output:
        Image.new("RGB", size, "blue").save(output, format="JPEG")
        return output.getvalue()


class TestDimensionValidation:
    """Tests for rejecting invalid sizes before anything runs."""

    @pytest.mark.parametrize(
        "width, height",
        [(0, 100), (100, 0), (0, 0), (-2, 100), (100, -5), (-1, 100), (100, -1)],
    )
    def test_invalid_dimensions(
        self, fake_programs: FakePrograms, width: int, height: int
    ) -> None:
        fake_programs.install("rsvg-convert", stdout=png_bytes())
        data = svg_bytes()
        stream = io.BytesIO(data)
        with pytest.raises(InvalidDimensionsError) as exc_info:
            convert(stream, width, height, "png")
        assert exc_info.value.stream is stream
        assert stream.tell() == 0
        assert stream.read() == data
        assert not fake_programs.was_run("rsvg-convert")

    def test_exceeds_maximum_dimension(self, fake_programs: FakePrograms) -> None:
        fake_programs.install("rsvg-convert", stdout=png_bytes())
        with pytest.raises(InvalidDimensionsError, match="maximum dimension"):
            convert(
                io.BytesIO(svg_bytes()),
                4096,
                4096,
                "png",
                limits=ResourceLimits(max_image_dimension=1024),
            )
        assert not fake_programs.was_run("rsvg-convert")

    @pytest.mark.parametrize("max_dimension", [0, -1, -256])
    def test_invalid_max_dimension(self, max_dimension: int) -> None:
        stream = io.BytesIO(svg_bytes())
        with pytest.raises(InvalidDimensionsError) as exc_info:
            convert_with_aspect(stream, max_dimension, "png")
        assert exc_info.value.stream is stream


class TestConvert:
    """Tests for convert() with fake programs."""

    def test_svg_to_png(self, fake_programs: FakePrograms) -> None:
        output = png_bytes((512, 512))
        fake_programs.install("rsvg-convert", stdout=output)
        data = svg_bytes()
        result = convert(io.BytesIO(data), 512, 512, "png")
        assert result.read() == output
        assert fake_programs.args("rsvg-convert") == [
            "-w", "512", "-h", "512", "-f", "png",
        ]  # fmt: skip

    def test_program_receives_every_byte(self, fake_programs: FakePrograms) -> None:
        """Test sniffing does not consume bytes meant for the program."""
        fake_programs.install("convert", stdout=b"GIF89a")
        data = jpeg_bytes((1200, 900)) + os.urandom(300_000)
        source = NonSeekable(data)
        convert(source, 100, 100, "gif")  # type: ignore[arg-type]
        assert fake_programs.stdin("convert") == data
        assert source.bytes_read == len(data)

    def test_spooled_input(self, fake_programs: FakePrograms) -> None:
        fake_programs.install("convert", stdout=b"ok")
        data = jpeg_bytes((64, 64)) + os.urandom(200_000)
        convert(
            io.BytesIO(data),
            32,
            32,
            "png",
            limits=ResourceLimits(max_buffer_memory=4096),
        )
        assert fake_programs.stdin("convert") == data

    def test_native_size(self, fake_programs: FakePrograms) -> None:
        fake_programs.install("inkscape", stdout=b"%PDF-1.7")
        result = convert(io.BytesIO(svg_bytes()), -1, -1, "pdf")
        assert result.read() == b"%PDF-1.7"
        assert fake_programs.args("inkscape") == [
            "--pipe",
            "--export-type=pdf",
            "--export-filename=-",
        ]

    def test_output_format_is_canonicalized(self, fake_programs: FakePrograms) -> None:
        fake_programs.install("convert", stdout=b"jpeg")
        convert(io.BytesIO(png_bytes()), 10, 10, ".JPEG")
        assert fake_programs.args("convert")[-1] == "jpg:-"

    def test_svg_density_from_document_size(self, fake_programs: FakePrograms) -> None:
        """Test ImageMagick rasterizes a small SVG at a compensating density."""
        fake_programs.install("convert", stdout=png_bytes())
        convert(io.BytesIO(svg_bytes((16, 16))), 512, 512, "png")
        args = fake_programs.args("convert")
        assert args[args.index("-density") + 1] == "3072"

    def test_svg_density_without_document_size(
        self, fake_programs: FakePrograms
    ) -> None:
        """Test a missing SVG size falls back to the default density."""
        fake_programs.install("convert", stdout=png_bytes())
        with open(get_fixture("no_size.svg"), "rb") as f:
            convert(f, 512, 512, "png")
        args = fake_programs.args("convert")
        assert args[args.index("-density") + 1] == "96"

    def test_svg_size_not_read_without_density(
        self, fake_programs: FakePrograms, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test rasterizers that take the target size directly skip SVG metrics."""
        fake_programs.install("resvg", stdout=png_bytes())
        with open(get_fixture("no_size.svg"), "rb") as f:
            with patch(
                "imgconv.pipeline.read_svg_size", wraps=read_svg_size
            ) as read_size:
                convert(f, 512, 512, "png")
        read_size.assert_not_called()
        assert "default density" not in caplog.text
        assert "-density" not in fake_programs.args("resvg")

    def test_library_path_not_inherited(
        self, fake_programs: FakePrograms, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("LD_LIBRARY_PATH", "/opt/bundle/lib")
        monkeypatch.setenv("IMGCONV_TEST_MARKER", "kept")
        fake_programs.install("resvg", stdout=png_bytes())
        convert(io.BytesIO(svg_bytes()), 8, 8, "png")
        env = fake_programs.env("resvg")
        assert "LD_LIBRARY_PATH" not in env
        assert env["IMGCONV_TEST_MARKER"] == "kept"
        assert os.environ["LD_LIBRARY_PATH"] == "/opt/bundle/lib"

    def test_restricted_candidates(self, fake_programs: FakePrograms) -> None:
        fake_programs.install("resvg", stdout=b"resvg")
        fake_programs.install("convert", stdout=b"convert")
        result = convert(
            io.BytesIO(svg_bytes()),
            8,
            8,
            "png",
            tools=[ImageMagickTool(program="convert")],
        )
        assert result.read() == b"convert"
        assert not fake_programs.was_run("resvg")


class TestConvertWithAspect:
    """Tests for convert_with_aspect()."""

    def test_viewbox_only_svg(self, fake_programs: FakePrograms) -> None:
        fake_programs.install("rsvg-convert", stdout=png_bytes((256, 256)))
        result = convert_with_aspect(io.BytesIO(VIEWBOX_ONLY_SVG), 256, "png")
        assert result.read(8) == PNG_SIGNATURE
        assert fake_programs.args("rsvg-convert")[:4] == ["-w", "256", "-h", "256"]

    def test_svg_aspect(self, fake_programs: FakePrograms) -> None:
        fake_programs.install("resvg", stdout=png_bytes())
        convert_with_aspect(io.BytesIO(svg_bytes((10, 5))), 512, "png")
        assert fake_programs.args("resvg")[:4] == ["-w", "512", "-h", "256"]

    def test_raster_aspect(self, fake_programs: FakePrograms) -> None:
        """Test the raster header size is used for the aspect ratio."""
        fake_programs.install("convert", stdout=b"webp")
        convert_with_aspect(io.BytesIO(jpeg_bytes((300, 600))), 200, "webp")
        args = fake_programs.args("convert")
        assert args[args.index("-resize") + 1] == "100x200"

    def test_thin_source_keeps_one_pixel(self, fake_programs: FakePrograms) -> None:
        fake_programs.install("resvg", stdout=png_bytes())
        svg = b'<svg xmlns="http://www.w3.org/2000/svg" width="1000" height="1"/>'
        convert_with_aspect(io.BytesIO(svg), 100, "png")
        assert fake_programs.args("resvg")[:4] == ["-w", "100", "-h", "1"]

    def test_svg_without_size(self, fake_programs: FakePrograms) -> None:
        """Test the scaler is never called without a usable source size."""
        fake_programs.install("resvg", stdout=png_bytes())
        with open(get_fixture("no_size.svg"), "rb") as f:
            data = f.read()
        with patch("imgconv.pipeline.scale_with_aspect") as scale:
            with pytest.raises(MetricsUnavailableError) as exc_info:
                convert_with_aspect(io.BytesIO(data), 256, "png")
        scale.assert_not_called()
        assert exc_info.value.stream is not None
        assert exc_info.value.stream.read() == data
        assert not fake_programs.was_run("resvg")


class TestErrors:
    """Tests for errors and the input they carry back."""

    def test_no_capable_program(self, fake_programs: FakePrograms) -> None:
        fake_programs.install("rsvg-convert", stdout=png_bytes())
        data = VIEWBOX_ONLY_SVG
        with pytest.raises(NoSuitableToolError) as exc_info:
            convert_with_aspect(io.BytesIO(data), 256, "gif")
        assert exc_info.value.stream is not None
        assert exc_info.value.stream.read() == data

    def test_nothing_installed(self, fake_programs: FakePrograms) -> None:
        data = VIEWBOX_ONLY_SVG
        with pytest.raises(NoSuitableToolError) as exc_info:
            convert_with_aspect(NonSeekable(data), 256, "png")  # type: ignore[arg-type]
        assert exc_info.value.stream is not None
        assert exc_info.value.stream.read() == data

    def test_unsupported_media(self, fake_programs: FakePrograms) -> None:
        data = b"just some text\n" * 100
        with pytest.raises(UnsupportedMediaError) as exc_info:
            convert(io.BytesIO(data), 10, 10, "png")
        assert exc_info.value.stream is not None
        assert exc_info.value.stream.read() == data

    def test_unsupported_output_format(self, fake_programs: FakePrograms) -> None:
        fake_programs.install("convert")
        with pytest.raises(UnsupportedFormatError):
            convert(io.BytesIO(png_bytes()), 10, 10, "docx")
        assert not fake_programs.was_run("convert")

    def test_non_zero_exit(self, fake_programs: FakePrograms) -> None:
        fake_programs.install("rsvg-convert", stderr="bad input", exit_code=1)
        data = svg_bytes()
        with pytest.raises(SubprocessError, match="bad input") as exc_info:
            convert(io.BytesIO(data), 8, 8, "png")
        error = exc_info.value
        assert str(error) == "bad input"
        assert error.returncode == 1
        assert error.stderr == "bad input"
        assert error.stream is not None
        assert error.stream.read() == data

    def test_non_zero_exit_without_stderr(self, fake_programs: FakePrograms) -> None:
        fake_programs.install("rsvg-convert", exit_code=3)
        with pytest.raises(SubprocessError, match="exited with status 3"):
            convert(io.BytesIO(svg_bytes()), 8, 8, "png")

    def test_warning_is_error_by_default(self, fake_programs: FakePrograms) -> None:
        """Test stderr output fails the conversion and keeps the output bytes."""
        fake_programs.install("convert", stdout=b"partial", stderr="warning: odd")
        with pytest.raises(SubprocessError, match="warning: odd") as exc_info:
            convert(io.BytesIO(png_bytes()), 8, 8, "gif")
        assert exc_info.value.returncode == 0
        assert exc_info.value.output == b"partial"

    def test_lenient_accepts_warning(
        self, fake_programs: FakePrograms, caplog: pytest.LogCaptureFixture
    ) -> None:
        fake_programs.install("convert", stdout=b"GIF89a", stderr="warning: odd")
        result = convert(io.BytesIO(png_bytes()), 8, 8, "gif", strict=False)
        assert result.read() == b"GIF89a"
        assert "warning: odd" in caplog.text

    def test_lenient_still_fails_on_exit_status(
        self, fake_programs: FakePrograms
    ) -> None:
        fake_programs.install("convert", stderr="broken", exit_code=1)
        with pytest.raises(SubprocessError, match="broken"):
            convert(io.BytesIO(png_bytes()), 8, 8, "gif", strict=False)

    def test_program_removed_after_selection(
        self, fake_programs: FakePrograms
    ) -> None:
        """Test a program that cannot be started is reported directly."""
        path = fake_programs.install("resvg")
        with patch("imgconv.tools.base_tool.shutil.which", return_value=str(path)):
            path.unlink()
            with pytest.raises(SubprocessError, match="Failed to start") as exc_info:
                convert(io.BytesIO(svg_bytes()), 8, 8, "png")
        assert isinstance(exc_info.value.__cause__, OSError)

    def test_errors_share_base_class(self, fake_programs: FakePrograms) -> None:
        with pytest.raises(ImgconvError):
            convert(io.BytesIO(svg_bytes()), 8, 8, "png")


class TestTimeout:
    """Tests for killing programs that hang."""

    def test_hung_program_is_killed(self, fake_programs: FakePrograms) -> None:
        fake_programs.install("resvg", stdout=b"partial", sleep=30)
        data = svg_bytes()
        start = time.monotonic()
        with pytest.raises(SubprocessTimeoutError) as exc_info:
            convert(io.BytesIO(data), 8, 8, "png", limits=ResourceLimits(timeout=1))
        assert time.monotonic() - start < 20
        error = exc_info.value
        assert isinstance(error, TimeoutError)
        assert error.timeout == 1
        assert "timed out after 1 seconds" in str(error)
        assert error.output == b"partial"
        assert error.stream is not None
        assert error.stream.read() == data

    def test_hung_child_of_wrapper_is_killed(
        self, fake_programs: FakePrograms
    ) -> None:
        """Test a child process holding the pipes does not outlast the timeout."""
        fake_programs.install("resvg", stdout=b"partial", sleep=30, sleep_in_child=True)
        start = time.monotonic()
        with pytest.raises(SubprocessTimeoutError) as exc_info:
            convert(
                io.BytesIO(svg_bytes()), 8, 8, "png", limits=ResourceLimits(timeout=1)
            )
        assert time.monotonic() - start < 20
        assert exc_info.value.output == b"partial"

    def test_fast_program_within_timeout(self, fake_programs: FakePrograms) -> None:
        fake_programs.install("resvg", stdout=b"done")
        result = convert(
            io.BytesIO(svg_bytes()), 8, 8, "png", limits=ResourceLimits(timeout=30)
        )
        assert result.read() == b"done"


class TestRealPrograms:
    """Tests against conversion programs installed on this machine."""

    @requires_rsvg_convert
    def test_rsvg_convert_viewbox_only(self) -> None:
        result = convert_with_aspect(
            io.BytesIO(VIEWBOX_ONLY_SVG), 256, "png", strict=False
        )
        image = Image.open(result)
        assert image.format == "PNG"
        assert image.size == (256, 256)

    @requires_imagemagick
    def test_imagemagick_png_to_gif(self) -> None:
        result = convert(
            io.BytesIO(png_bytes((40, 20))),
            20,
            10,
            "gif",
            strict=False,
            tools=[ImageMagickTool(), ImageMagickTool(program="convert")],
        )
        image = Image.open(result)
        assert image.format == "GIF"
        assert image.size == (20, 10)
