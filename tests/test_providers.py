"""Tests for previewkit.providers."""

import importlib.util
import subprocess
import zipfile
from io import BytesIO
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from PIL import Image

from previewkit.files import FileInfo
from previewkit.providers import base as base_module
from previewkit.providers import LegacyPreviewProvider, PreviewProvider, supports_availability
from previewkit.providers.builtin import (
    BUILTIN_PROVIDERS,
    MP3,
    PDF,
    PNG,
    TXT,
    Krita,
    MarkDown,
    Movie,
    MSOfficeDoc,
    OpenDocument,
    fit_image,
)


def _png_bytes(size=(40, 20), color="blue"):
    buffer = BytesIO()
    Image.new("RGB", size, color=color).save(buffer, format="PNG")
    return buffer.getvalue()


def _zip_file(path, members):
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in members.items():
            zf.writestr(name, data)
    return FileInfo.from_path(path)


class TestPreviewProviderABC:
    """Tests for class-definition validation."""

    def test_cannot_instantiate_abc(self):
        with pytest.raises(TypeError, match="abstract"):
            PreviewProvider()

    def test_must_define_name(self):
        with pytest.raises(TypeError, match="must define 'name'"):

            class NoName(PreviewProvider):
                mime_type = "image/png"

                def get_thumbnail(self, file, max_x, max_y):
                    return None

    def test_invalid_name(self):
        with pytest.raises(TypeError, match="invalid name"):

            class BadName(PreviewProvider):
                name = "not valid"
                mime_type = "image/png"

                def get_thumbnail(self, file, max_x, max_y):
                    return None

    def test_must_define_mime_type(self):
        with pytest.raises(TypeError, match="must define 'mime_type'"):

            class NoMime(PreviewProvider):
                name = "nomime"

                def get_thumbnail(self, file, max_x, max_y):
                    return None

    def test_invalid_mime_pattern(self):
        with pytest.raises(TypeError, match="invalid mime_type pattern"):

            class BadMime(PreviewProvider):
                name = "badmime"
                mime_type = "image/(png"

                def get_thumbnail(self, file, max_x, max_y):
                    return None

    def test_intermediate_abstract_class_skips_validation(self):
        class Intermediate(PreviewProvider):
            pass

        assert Intermediate.__abstractmethods__

    def test_options_kept(self):
        assert PNG(max_filesize_image=3).options == {"max_filesize_image": 3}

    def test_base_module_loads_standalone(self):
        """The module defines its subclasses without forward references."""
        module_spec = importlib.util.spec_from_file_location(
            "previewkit_base_fresh", base_module.__file__
        )
        module = importlib.util.module_from_spec(module_spec)
        module_spec.loader.exec_module(module)

        assert issubclass(module.LegacyPreviewProvider, module.PreviewProvider)

    def test_concrete_legacy_subclass_is_validated(self):
        with pytest.raises(TypeError, match="invalid name"):

            class BadLegacy(LegacyPreviewProvider):
                name = "bad name"
                mime_type = "image/png"

                def get_thumbnail(self, file, max_x, max_y):
                    return None


class TestAvailabilityCapability:
    def test_full_provider_exposes_probe(self):
        provider = PNG()
        assert supports_availability(provider)
        assert provider.availability() == provider.is_available

    def test_legacy_provider_has_no_probe(self):
        class Legacy(LegacyPreviewProvider):
            name = "Legacy"
            mime_type = "image/png"

            def get_thumbnail(self, file, max_x, max_y):
                return None

        assert Legacy().availability() is None
        assert not supports_availability(Legacy())


class TestBuiltinTable:
    def test_names_match_keys(self):
        for name, cls in BUILTIN_PROVIDERS.items():
            assert cls.name == name

    def test_all_concrete(self):
        for cls in BUILTIN_PROVIDERS.values():
            assert isinstance(cls(), PreviewProvider)


class TestBitmapProviders:
    def test_renders_within_box(self, png_file):
        im = PNG().get_thumbnail(png_file, 16, 16)
        assert im.size == (16, 8)

    def test_never_upscales(self, png_file):
        im = PNG().get_thumbnail(png_file, 500, 500)
        assert im.size == (64, 32)

    def test_unreadable_file(self, tmp_path):
        path = tmp_path / "fake.png"
        path.write_bytes(b"not an image")
        assert PNG().get_thumbnail(FileInfo.from_path(path), 10, 10) is None

    def test_size_limit(self, png_file):
        png_file.size = 3 * 1024 * 1024
        assert PNG(max_filesize_image=2).is_available(png_file) is False
        assert PNG(max_filesize_image=5).is_available(png_file) is True
        assert PNG(max_filesize_image=-1).is_available(png_file) is True


class TestEmbeddedThumbnails:
    def test_krita_merged_image(self, tmp_path):
        info = _zip_file(tmp_path / "art.kra", {"mergedimage.png": _png_bytes((80, 40))})
        assert info.mime_type == "application/x-krita"
        assert Krita().get_thumbnail(info, 20, 20).size == (20, 10)

    def test_krita_without_preview(self, tmp_path):
        info = _zip_file(tmp_path / "art.kra", {"maindoc.xml": b"<doc/>"})
        assert Krita().get_thumbnail(info, 20, 20) is None

    def test_not_a_zip(self, tmp_path):
        path = tmp_path / "art.kra"
        path.write_bytes(b"plain")
        assert Krita().get_thumbnail(FileInfo.from_path(path), 20, 20) is None

    def test_opendocument_thumbnail(self, tmp_path):
        info = _zip_file(
            tmp_path / "doc.odt", {"Thumbnails/thumbnail.png": _png_bytes((30, 30))}
        )
        assert OpenDocument().get_thumbnail(info, 10, 10).size == (10, 10)

    def test_opendocument_without_thumbnail_or_converter(self, tmp_path):
        info = _zip_file(tmp_path / "doc.odt", {"content.xml": b"<x/>"})
        assert OpenDocument().get_thumbnail(info, 10, 10) is None


class TestText:
    def test_renders_page(self, text_file):
        im = TXT().get_thumbnail(text_file, 120, 80)
        assert im.size == (120, 80)

    def test_empty_file_unavailable(self, tmp_path):
        path = tmp_path / "empty.txt"
        path.write_text("")
        assert TXT().is_available(FileInfo.from_path(path)) is False

    def test_markdown_strips_markers(self, tmp_path):
        path = tmp_path / "README.md"
        path.write_text("# Title\n**bold** text\n")
        assert MarkDown()._read_lines(FileInfo.from_path(path)) == ["Title", "bold text"]


class TestExternalRenderers:
    """Providers that shell out; subprocess is mocked."""

    def test_movie_uses_avconv_first(self, tmp_path):
        movie = Movie(avconv_binary="/bin/avconv", ffmpeg_binary="/bin/ffmpeg")
        assert movie.binary == "/bin/avconv"

    def test_movie_unavailable_without_binary(self):
        info = FileInfo(path=Path("clip.mp4"), mime_type="video/mp4")
        assert Movie().is_available(info) is False
        assert Movie(ffmpeg_binary="/bin/ffmpeg").is_available(info) is True

    def test_movie_grabs_frame(self):
        info = FileInfo(path=Path("clip.mp4"), mime_type="video/mp4")
        result = MagicMock(stdout=_png_bytes((100, 50)))
        with patch("previewkit.providers.builtin.subprocess.run", return_value=result) as run:
            im = Movie(ffmpeg_binary="/bin/ffmpeg").get_thumbnail(info, 50, 50)

        assert im.size == (50, 25)
        cmd = run.call_args[0][0]
        assert cmd[0] == "/bin/ffmpeg"
        assert cmd[cmd.index("-ss") + 1] == "5"

    def test_movie_falls_back_to_earlier_seek(self):
        info = FileInfo(path=Path("short.mp4"), mime_type="video/mp4")
        ok = MagicMock(stdout=_png_bytes())
        failures = [subprocess.CalledProcessError(1, "ffmpeg"), ok]
        with patch("previewkit.providers.builtin.subprocess.run", side_effect=failures) as run:
            im = Movie(ffmpeg_binary="/bin/ffmpeg").get_thumbnail(info, 10, 10)

        assert im is not None
        assert run.call_count == 2
        second_cmd = run.call_args_list[1][0][0]
        assert second_cmd[second_cmd.index("-ss") + 1] == "1"

    def test_movie_gives_up(self):
        info = FileInfo(path=Path("broken.mp4"), mime_type="video/mp4")
        with patch(
            "previewkit.providers.builtin.subprocess.run",
            side_effect=subprocess.CalledProcessError(1, "ffmpeg"),
        ) as run:
            assert Movie(ffmpeg_binary="/bin/ffmpeg").get_thumbnail(info, 10, 10) is None
        assert run.call_count == 3

    def test_mp3_needs_transcoder(self):
        info = FileInfo(path=Path("song.mp3"), mime_type="audio/mpeg")
        assert MP3().is_available(info) is False
        assert MP3().get_thumbnail(info, 10, 10) is None
        assert MP3(transcoder="/bin/ffmpeg").is_available(info) is True

    def test_graphics_command(self):
        info = FileInfo(path=Path("doc.pdf"), mime_type="application/pdf")
        result = MagicMock(stdout=_png_bytes((60, 60)))
        with patch("previewkit.providers.builtin.subprocess.run", return_value=result) as run:
            im = PDF(graphics_binary="/usr/bin/magick").get_thumbnail(info, 30, 30)

        assert im.size == (30, 30)
        cmd = run.call_args[0][0]
        assert cmd[0] == "/usr/bin/magick"
        assert "doc.pdf[0]" in cmd
        assert cmd[-1] == "png:-"

    def test_graphics_without_binary(self):
        info = FileInfo(path=Path("doc.pdf"), mime_type="application/pdf")
        assert PDF().get_thumbnail(info, 30, 30) is None

    def test_office_conversion(self, tmp_path):
        info = FileInfo(path=tmp_path / "letter.doc", mime_type="application/msword")

        def fake_run(cmd, **kwargs):
            out_dir = Path(cmd[cmd.index("--outdir") + 1])
            (out_dir / "letter.png").write_bytes(_png_bytes((200, 100)))
            return MagicMock(stdout=b"converted")

        with patch("previewkit.providers.builtin.subprocess.run", side_effect=fake_run):
            im = MSOfficeDoc(office_binary="/usr/bin/libreoffice").get_thumbnail(info, 50, 50)

        assert im.size == (50, 25)

    def test_office_conversion_failure(self, tmp_path):
        info = FileInfo(path=tmp_path / "letter.doc", mime_type="application/msword")
        with patch(
            "previewkit.providers.builtin.subprocess.run", side_effect=OSError("missing")
        ):
            assert MSOfficeDoc(office_binary="/nope").get_thumbnail(info, 50, 50) is None


class TestFitImage:
    def test_converts_palette_images(self):
        im = Image.new("P", (10, 10))
        assert fit_image(im, 5, 5).mode == "RGBA"

    def test_non_positive_box_keeps_size(self):
        im = Image.new("RGB", (10, 10))
        assert fit_image(im, -1, -1).size == (10, 10)
