from __future__ import annotations

import base64
import io

from PIL import Image

from adwizard.models import AdSize


def fit_to_ad_size(img: Image.Image, size: AdSize) -> Image.Image:
    """
    The image models only honour coarse aspect ratios, so the final render is
    cover-cropped to the exact pixel size of the chosen ad format.
    """
    target = size.dimensions
    if img.size == target:
        return img
    return _resize_cover(img.convert("RGB"), target)


def _resize_cover(img: Image.Image, size: tuple[int, int]) -> Image.Image:
    """
    Resize to cover the target canvas (no stretching), then center-crop.
    """
    tw, th = size
    iw, ih = img.size
    if iw <= 0 or ih <= 0:
        return img.resize(size, Image.Resampling.LANCZOS)

    scale = max(tw / iw, th / ih)
    nw, nh = max(tw, round(iw * scale)), max(th, round(ih * scale))
    resized = img.resize((nw, nh), Image.Resampling.LANCZOS)

    left = max(0, (nw - tw) // 2)
    top = max(0, (nh - th) // 2)
    return resized.crop((left, top, left + tw, top + th))


def pil_to_png_bytes(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def png_data_url(img: Image.Image) -> str:
    encoded = base64.b64encode(pil_to_png_bytes(img)).decode("ascii")
    return f"data:image/png;base64,{encoded}"
