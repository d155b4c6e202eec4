"""Built-in preview providers.

Raster formats are opened with Pillow directly. Vector, print and layered
formats go through ImageMagick, video (and MP3 cover art) through
ffmpeg/avconv, and office documents through LibreOffice. Paths of those
binaries are passed in as constructor options by the registry.
"""

from __future__ import annotations

import logging
import subprocess
import tempfile
import zipfile
from io import BytesIO
from pathlib import Path

from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from ..files import FileInfo
from .base import PreviewProvider

logger = logging.getLogger(__name__)

_BACKGROUND = "#ffffff"
_COMMAND_TIMEOUT = 60  # seconds
_MIB = 1024 * 1024


def fit_image(im: Image.Image, max_x: int, max_y: int) -> Image.Image:
    """Scale ``im`` down (never up) to fit the box, keeping aspect ratio."""
    if im.mode not in ("RGB", "RGBA"):
        im = im.convert(mode="RGBA")
    if max_x > 0 and max_y > 0:
        im.thumbnail((max_x, max_y))
    return im


def _open_bytes(data: bytes) -> Image.Image | None:
    try:
        im = Image.open(BytesIO(data))
        im.load()
    except (UnidentifiedImageError, OSError) as exc:
        logger.debug("Cannot decode rendered image: %s", exc)
        return None
    return im


def _run(cmd: list[str]) -> bytes | None:
    """Run an external renderer, returning stdout or None on failure."""
    try:
        result = subprocess.run(
            cmd,
            check=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            timeout=_COMMAND_TIMEOUT,
        )
    except (subprocess.SubprocessError, OSError) as exc:
        logger.debug("Command %s failed: %s", cmd[0], exc)
        return None
    return result.stdout or None


# ---------------------------------------------------------------------------
# Raster images (Pillow)
# ---------------------------------------------------------------------------


class BitmapProvider(PreviewProvider):
    """Base for formats Pillow can open directly.

    Option ``max_filesize_image`` (MiB, -1 for no limit) bounds the size of
    files this provider agrees to open.
    """

    name = "Bitmap"
    mime_type = r"image/.*"

    def is_available(self, file: FileInfo) -> bool:
        limit = self.options.get("max_filesize_image", 50)
        if limit == -1:
            return True
        return file.size <= limit * _MIB

    def get_thumbnail(self, file, max_x, max_y):
        try:
            with Image.open(file.path) as im:
                im.load()
                return fit_image(im.copy(), max_x, max_y)
        except (UnidentifiedImageError, OSError) as exc:
            logger.debug("Pillow cannot open %s: %s", file.path, exc)
            return None


class PNG(BitmapProvider):
    name = "PNG"
    mime_type = r"image/png"


class JPEG(BitmapProvider):
    name = "JPEG"
    mime_type = r"image/jpeg"


class GIF(BitmapProvider):
    name = "GIF"
    mime_type = r"image/gif"


class BMP(BitmapProvider):
    name = "BMP"
    mime_type = r"image/bmp"


class XBitmap(BitmapProvider):
    name = "XBitmap"
    mime_type = r"image/x-xbitmap"


# ---------------------------------------------------------------------------
# Zip containers with an embedded preview image
# ---------------------------------------------------------------------------


class EmbeddedThumbnailProvider(PreviewProvider):
    """Base for zip-based documents that carry their own preview image."""

    name = "Embedded"
    mime_type = r"application/zip"
    thumbnail_members: tuple[str, ...] = ()

    def get_thumbnail(self, file, max_x, max_y):
        try:
            with zipfile.ZipFile(file.path, "r") as zip_file:
                names = set(zip_file.namelist())
                for member in self.thumbnail_members:
                    if member in names:
                        im = _open_bytes(zip_file.read(member))
                        if im is not None:
                            return fit_image(im, max_x, max_y)
        except (zipfile.BadZipFile, OSError) as exc:
            logger.debug("Cannot read %s as zip: %s", file.path, exc)
        return None


class Krita(EmbeddedThumbnailProvider):
    name = "Krita"
    mime_type = r"application/x-krita"
    thumbnail_members = ("mergedimage.png", "preview.png")


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------


class TXT(PreviewProvider):
    """Draws the first lines of a text file onto a blank page."""

    name = "TXT"
    mime_type = r"text/plain"

    line_height = 14
    max_lines = 64

    def _read_lines(self, file: FileInfo) -> list[str]:
        with open(file.path, encoding="utf-8", errors="replace") as f:
            lines = []
            for line in f:
                lines.append(line.rstrip("\n"))
                if len(lines) >= self.max_lines:
                    break
        return lines

    def is_available(self, file: FileInfo) -> bool:
        return file.size > 0

    def get_thumbnail(self, file, max_x, max_y):
        try:
            lines = self._read_lines(file)
        except OSError as exc:
            logger.debug("Cannot read %s: %s", file.path, exc)
            return None

        width = max_x if max_x > 0 else 512
        height = max_y if max_y > 0 else 512
        im = Image.new("RGB", (width, height), color=_BACKGROUND)
        draw = ImageDraw.Draw(im)
        font = ImageFont.load_default()
        y = 4
        for line in lines:
            if y + self.line_height > height:
                break
            draw.text((4, y), line, fill="#000000", font=font)
            y += self.line_height
        return im


class MarkDown(TXT):
    name = "MarkDown"
    mime_type = r"text/(x-)?markdown"

    def _read_lines(self, file: FileInfo) -> list[str]:
        # Drop heading and emphasis markers; this is a preview, not a renderer
        return [line.lstrip("#> ").replace("**", "") for line in super()._read_lines(file)]


# ---------------------------------------------------------------------------
# ImageMagick formats
# ---------------------------------------------------------------------------


class GraphicsProvider(PreviewProvider):
    """Base for formats rendered through ImageMagick.

    Option ``graphics_binary`` is the ``magick``/``convert`` path. Only the
    first page or layer (``[0]``) is rendered.
    """

    name = "Graphics"
    mime_type = r"image/.*"

    def get_thumbnail(self, file, max_x, max_y):
        binary = self.options.get("graphics_binary")
        if not binary:
            return None
        cmd = [binary, "-background", _BACKGROUND, f"{file.path}[0]", "-flatten"]
        if max_x > 0 and max_y > 0:
            cmd += ["-thumbnail", f"{max_x}x{max_y}>"]
        cmd.append("png:-")
        data = _run(cmd)
        if data is None:
            return None
        im = _open_bytes(data)
        return fit_image(im, max_x, max_y) if im is not None else None


class SVG(GraphicsProvider):
    name = "SVG"
    mime_type = r"image/svg\+xml"


class TIFF(GraphicsProvider):
    name = "TIFF"
    mime_type = r"image/tiff"


class PDF(GraphicsProvider):
    name = "PDF"
    mime_type = r"application/pdf"


class Illustrator(GraphicsProvider):
    name = "Illustrator"
    mime_type = r"application/illustrator"


class Photoshop(GraphicsProvider):
    name = "Photoshop"
    mime_type = r"application/x-photoshop"


class Postscript(GraphicsProvider):
    name = "Postscript"
    mime_type = r"application/postscript"


class Font(GraphicsProvider):
    name = "Font"
    mime_type = r"application/(?:font-sfnt|x-font$)"


class HEIC(GraphicsProvider):
    name = "HEIC"
    mime_type = r"image/hei(f|c)"


# ---------------------------------------------------------------------------
# Office documents (LibreOffice)
# ---------------------------------------------------------------------------


class Office(PreviewProvider):
    """Base for documents converted to an image by LibreOffice.

    Option ``office_binary`` is the converter path.
    """

    name = "Office"
    mime_type = r"application/vnd\..*"

    def _convert(self, file: FileInfo) -> Image.Image | None:
        binary = self.options.get("office_binary")
        if not binary:
            return None
        with tempfile.TemporaryDirectory() as out_dir:
            cmd = [
                binary,
                "--headless",
                "--convert-to",
                "png",
                "--outdir",
                out_dir,
                str(file.path),
            ]
            if _run(cmd) is None and not any(Path(out_dir).glob("*.png")):
                return None
            for png in sorted(Path(out_dir).glob("*.png")):
                im = _open_bytes(png.read_bytes())
                if im is not None:
                    return im
        return None

    def get_thumbnail(self, file, max_x, max_y):
        im = self._convert(file)
        return fit_image(im, max_x, max_y) if im is not None else None


class MSOfficeDoc(Office):
    name = "MSOfficeDoc"
    mime_type = r"application/msword"


class MSOffice2003(Office):
    name = "MSOffice2003"
    mime_type = r"application/vnd.ms-.*"


class MSOffice2007(Office):
    name = "MSOffice2007"
    mime_type = r"application/vnd.openxmlformats-officedocument.*"


class StarOffice(Office):
    name = "StarOffice"
    mime_type = r"application/vnd.sun.xml.*"


class OpenDocument(Office):
    """OpenDocument files carry a thumbnail; LibreOffice is the fallback."""

    name = "OpenDocument"
    mime_type = r"application/vnd.oasis.opendocument.*"

    def get_thumbnail(self, file, max_x, max_y):
        try:
            with zipfile.ZipFile(file.path, "r") as zip_file:
                if "Thumbnails/thumbnail.png" in zip_file.namelist():
                    im = _open_bytes(zip_file.read("Thumbnails/thumbnail.png"))
                    if im is not None:
                        return fit_image(im, max_x, max_y)
        except (zipfile.BadZipFile, OSError) as exc:
            logger.debug("Cannot read %s as zip: %s", file.path, exc)
        return super().get_thumbnail(file, max_x, max_y)


# ---------------------------------------------------------------------------
# Audio and video (ffmpeg / avconv)
# ---------------------------------------------------------------------------


def _grab_frame(binary: str, path: Path, seek: float | None) -> Image.Image | None:
    cmd = [binary, "-y", "-loglevel", "error"]
    if seek is not None:
        cmd += ["-ss", str(seek)]
    cmd += ["-i", str(path), "-an", "-frames:v", "1", "-f", "image2pipe", "-vcodec", "png", "pipe:1"]
    data = _run(cmd)
    return _open_bytes(data) if data else None


class Movie(PreviewProvider):
    """Grabs a frame from a video.

    Options ``avconv_binary`` and ``ffmpeg_binary``; avconv wins when both
    are given. Seeks five seconds in, then falls back to the first frame
    for short clips.
    """

    name = "Movie"
    mime_type = r"video/.*"

    seek_positions = (5, 1, None)

    @property
    def binary(self) -> str | None:
        return self.options.get("avconv_binary") or self.options.get("ffmpeg_binary")

    def is_available(self, file: FileInfo) -> bool:
        return self.binary is not None

    def get_thumbnail(self, file, max_x, max_y):
        binary = self.binary
        if binary is None:
            return None
        for seek in self.seek_positions:
            im = _grab_frame(binary, file.path, seek)
            if im is not None:
                return fit_image(im, max_x, max_y)
        return None


class MP3(PreviewProvider):
    """Extracts embedded cover art from an MP3 file.

    Needs option ``transcoder`` (an ffmpeg-compatible binary); without it
    no preview is produced.
    """

    name = "MP3"
    mime_type = r"audio/mpeg"

    def is_available(self, file: FileInfo) -> bool:
        return bool(self.options.get("transcoder"))

    def get_thumbnail(self, file, max_x, max_y):
        binary = self.options.get("transcoder")
        if not binary:
            return None
        im = _grab_frame(binary, file.path, None)
        return fit_image(im, max_x, max_y) if im is not None else None


BUILTIN_PROVIDERS: dict[str, type[PreviewProvider]] = {
    cls.name: cls
    for cls in (
        TXT,
        MarkDown,
        PNG,
        JPEG,
        GIF,
        BMP,
        XBitmap,
        Krita,
        MP3,
        OpenDocument,
        SVG,
        TIFF,
        PDF,
        Illustrator,
        Photoshop,
        Postscript,
        Font,
        HEIC,
        MSOfficeDoc,
        MSOffice2003,
        MSOffice2007,
        StarOffice,
        Movie,
    )
}
