"""Preview image transform.

Images are scaled down to a maximum width (never up), converted to RGB and
re-encoded as JPEG.
"""

from io import BytesIO

from PIL import Image

PREVIEW_FILE_NAME = "preview.jpg"

# Errors Pillow raises for unreadable or hostile input
IMAGE_ERRORS = (OSError, ValueError, Image.DecompressionBombError)


def resize_image(data: bytes, max_width: int, quality: int = 85) -> bytes:
    """Resize and re-encode an image.

    Args:
        data: Encoded source image
        max_width: Maximum output width in pixels
        quality: JPEG quality

    Returns:
        JPEG-encoded bytes

    Raises:
        PIL.UnidentifiedImageError: If the data is not a readable image
        OSError: If decoding fails
    """
    with Image.open(BytesIO(data)) as img:
        if img.mode != "RGB":
            img = img.convert("RGB")

        if img.width > max_width:
            ratio = max_width / img.width
            new_height = max(1, int(img.height * ratio))
            img = img.resize((max_width, new_height), Image.Resampling.LANCZOS)

        out = BytesIO()
        img.save(out, "JPEG", quality=quality, optimize=True)

    return out.getvalue()
