"""
Image transcoding: a size-capped display JPEG and a square crop-to-fill thumbnail.
"""
import io
from dataclasses import dataclass

from PIL import Image, ImageOps, UnidentifiedImageError

from photolog.exceptions import DecodeError

OUTPUT_FORMAT = "JPEG"


@dataclass(frozen=True)
class TranscodeResult:
    display_bytes: bytes
    thumbnail_bytes: bytes
    width: int  # source width, before any resize
    height: int  # source height, before any resize

    @property
    def dimensions(self) -> str:
        return f"{self.width}x{self.height}"


def _to_rgb(image: Image.Image) -> Image.Image:
    """Flatten onto white when there is transparency; JPEG has no alpha."""
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def _encode(image: Image.Image, quality: int) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format=OUTPUT_FORMAT, quality=quality, optimize=True)
    return buf.getvalue()


class MediaTranscoder:
    """
    Produces the two stored renditions of an upload.

    - display: longest side capped at ``display_max_side``, aspect ratio kept,
      never enlarged, JPEG at ``display_quality``
    - thumbnail: exactly ``thumbnail_size`` square, centre crop covering the
      whole frame, JPEG at ``thumbnail_quality``
    """

    def __init__(
        self,
        display_max_side: int = 2000,
        display_quality: int = 80,
        thumbnail_size: int = 200,
        thumbnail_quality: int = 70,
    ):
        self.display_max_side = display_max_side
        self.display_quality = display_quality
        self.thumbnail_size = thumbnail_size
        self.thumbnail_quality = thumbnail_quality

    @classmethod
    def from_settings(cls, settings) -> "MediaTranscoder":
        return cls(
            display_max_side=settings.display_max_side,
            display_quality=settings.display_quality,
            thumbnail_size=settings.thumbnail_size,
            thumbnail_quality=settings.thumbnail_quality,
        )

    def decode(self, raw: bytes) -> Image.Image:
        """
        Decode ``raw`` fully. Animated images yield their first frame.

        Raises:
            DecodeError: bytes are empty, not an image, truncated, or too large to decode safely
        """
        if not raw:
            raise DecodeError("Uploaded file is empty")
        try:
            image = Image.open(io.BytesIO(raw))
            image.load()
        except (UnidentifiedImageError, Image.DecompressionBombError) as e:
            raise DecodeError(f"Cannot decode image: {e}") from e
        except (OSError, ValueError, SyntaxError) as e:
            # truncated or corrupt data
            raise DecodeError(f"Cannot decode image: {e}") from e
        return image

    def transcode(self, raw: bytes) -> TranscodeResult:
        source = self.decode(raw)
        width, height = source.size
        rgb = _to_rgb(source)

        display = rgb.copy()
        # thumbnail() keeps aspect ratio and never enlarges
        display.thumbnail((self.display_max_side, self.display_max_side), Image.Resampling.LANCZOS)

        thumb = ImageOps.fit(
            rgb,
            (self.thumbnail_size, self.thumbnail_size),
            method=Image.Resampling.LANCZOS,
            centering=(0.5, 0.5),
        )

        return TranscodeResult(
            display_bytes=_encode(display, self.display_quality),
            thumbnail_bytes=_encode(thumb, self.thumbnail_quality),
            width=width,
            height=height,
        )
