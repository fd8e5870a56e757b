import logging
import httpx

from ..config.config import settings

logger = logging.getLogger(__name__)


class ImageUploadError(Exception):
    """Raised when the image host rejects or fails an upload."""
    pass


async def upload_image(content: bytes, filename: str, content_type: str = "image/jpeg") -> str:
    """
    Uploads a profile picture to the image host and returns its public URL.

    The host is expected to behave like Cloudinary's unsigned upload endpoint:
    a multipart form with 'file' and 'upload_preset', answered with JSON that
    carries 'secure_url' (or 'url').
    """
    if not settings.IMAGE_UPLOAD_URL:
        raise ImageUploadError("IMAGE_UPLOAD_URL is not configured.")

    files = {"file": (filename or "image.jpg", content, content_type or "image/jpeg")}
    data = {}
    if settings.IMAGE_UPLOAD_PRESET:
        data["upload_preset"] = settings.IMAGE_UPLOAD_PRESET

    async with httpx.AsyncClient(timeout=30.0) as client:
        try:
            response = await client.post(settings.IMAGE_UPLOAD_URL, files=files, data=data)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise ImageUploadError(f"Image host error: {e.response.status_code} - {e.response.text}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise ImageUploadError(f"Image upload failed: {e}") from e

    image_url = payload.get("secure_url") or payload.get("url")
    if not image_url:
        raise ImageUploadError("Image host response did not contain a URL.")
    logger.info(f"Uploaded image '{filename}' to {image_url}")
    return image_url
