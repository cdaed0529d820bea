from dataclasses import dataclass
from io import BytesIO

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

import settings
from errors import ImageDecodeError

MAX_IMAGE_PIXELS = getattr(settings, 'MAX_IMAGE_PIXELS', 64_000_000)
ALPHA_BACKGROUND = getattr(settings, 'ALPHA_BACKGROUND', 255)


@dataclass(frozen=True, eq=False)
class DecodedImage:
    """Luminance buffer: float array of shape (height, width), values in [0, 1]."""
    luminance: np.ndarray

    @property
    def width(self) -> int:
        return int(self.luminance.shape[1])

    @property
    def height(self) -> int:
        return int(self.luminance.shape[0])


def _rgb_to_luminance(rgb):
    gray = cv2.cvtColor(np.ascontiguousarray(rgb, dtype=np.uint8), cv2.COLOR_RGB2GRAY)
    lum = gray.astype(np.float64) / 255.0
    lum.flags.writeable = False
    return DecodedImage(lum)


def _wide_to_8bit(img):
    """Gray 16-bit, 32-bit int and float modes, scaled down to 8 bits the way cv2 reads them."""
    arr = np.asarray(img)
    if img.mode == "F":
        gray = np.clip(arr * 255.0, 0, 255)
    else:
        # "I" holds 16-bit samples for PNG and most TIFFs
        gray = np.clip(arr.astype(np.int64), 0, 0xFFFF) >> 8
    return cv2.cvtColor(gray.astype(np.uint8), cv2.COLOR_GRAY2RGB)


def _check_size(w, h):
    if w <= 0 or h <= 0:
        raise ImageDecodeError(f"Image has no pixels ({w}x{h}).")
    if MAX_IMAGE_PIXELS and w * h > MAX_IMAGE_PIXELS:
        raise ImageDecodeError(f"Image too large: {w}x{h} exceeds {MAX_IMAGE_PIXELS} pixels.")


class PillowDecoder:
    """
    Decodes anything Pillow can open. Only the first frame of animated
    formats is used; transparency is flattened onto a plain background.
    """

    def decode(self, data: bytes) -> DecodedImage:
        if not data:
            raise ImageDecodeError("Image data is empty.")
        try:
            with Image.open(BytesIO(data)) as img:
                _check_size(*img.size)
                if img.mode in ("I", "F") or img.mode.startswith("I;16"):
                    arr = _wide_to_8bit(img)
                elif img.mode in ("RGBA", "LA", "PA") or "transparency" in img.info:
                    rgba = img.convert("RGBA")
                    flat = Image.new("RGBA", rgba.size, (ALPHA_BACKGROUND,) * 3 + (255,))
                    flat.alpha_composite(rgba)
                    arr = np.asarray(flat.convert("RGB"))
                else:
                    arr = np.asarray(img.convert("RGB"))
        except (UnidentifiedImageError, Image.DecompressionBombError) as e:
            raise ImageDecodeError(f"Error reading image data: {e}") from e
        except (OSError, ValueError, SyntaxError, EOFError) as e:
            # Truncated and corrupt files surface as any of these.
            raise ImageDecodeError(f"Error reading image data: {e}") from e
        return _rgb_to_luminance(arr)


class OpenCVDecoder:
    """cv2.imdecode path: faster on large JPEG/PNG, fewer formats than Pillow."""

    def decode(self, data: bytes) -> DecodedImage:
        if not data:
            raise ImageDecodeError("Image data is empty.")
        buf = np.frombuffer(data, dtype=np.uint8)
        img = cv2.imdecode(buf, cv2.IMREAD_UNCHANGED)
        if img is None:
            raise ImageDecodeError("Error reading image data: unsupported or corrupt image.")
        _check_size(img.shape[1], img.shape[0])

        if img.dtype == np.uint16:
            img = (img >> 8).astype(np.uint8)
        elif img.dtype != np.uint8:
            img = np.clip(img * 255.0, 0, 255).astype(np.uint8)

        if img.ndim == 2:
            rgb = cv2.cvtColor(img, cv2.COLOR_GRAY2RGB)
        elif img.shape[2] == 4:
            bgr = img[:, :, :3].astype(np.float64)
            alpha = img[:, :, 3:4].astype(np.float64) / 255.0
            bgr = bgr * alpha + ALPHA_BACKGROUND * (1.0 - alpha)
            rgb = cv2.cvtColor(np.round(bgr).astype(np.uint8), cv2.COLOR_BGR2RGB)
        else:
            rgb = cv2.cvtColor(img, cv2.COLOR_BGR2RGB)
        return _rgb_to_luminance(rgb)


DECODERS = {
    "pillow": PillowDecoder,
    "opencv": OpenCVDecoder,
}


def get_decoder(name="pillow"):
    try:
        return DECODERS[name]()
    except KeyError:
        raise ValueError(f"Unknown image decoder: {name}") from None


def load_image(data: bytes, decoder=None) -> DecodedImage:
    return (decoder or PillowDecoder()).decode(data)
