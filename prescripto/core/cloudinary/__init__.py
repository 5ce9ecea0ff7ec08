import cloudinary
import cloudinary.uploader
import cloudinary.exceptions
import logging
from typing import Any, Optional

from ...config import Settings
from ...exceptions import UploadException

# Set up logger for this module
logger = logging.getLogger(__name__)

REPORT_FOLDER = "test-reports"
IMAGE_FOLDER = "test-images"


class CloudinaryStorage:
    """
    Uploads test result attachments to Cloudinary.

    Built once at application startup from settings. Uploads raise
    ``UploadException`` instead of returning nothing so that a failed
    transfer aborts the record write that needed it.
    """

    def __init__(self, cloud_name: Optional[str], api_key: Optional[str], api_secret: Optional[str]):
        self.configured = all([cloud_name, api_key, api_secret])
        if self.configured:
            cloudinary.config(
                cloud_name=cloud_name,
                api_key=api_key,
                api_secret=api_secret,
                secure=True
            )
        else:
            logger.warning("Cloudinary is not configured. Attachment uploads will fail.")

    @classmethod
    def from_settings(cls, settings: Settings) -> "CloudinaryStorage":
        return cls(
            settings.cloudinary_cloud_name,
            settings.cloudinary_api_key,
            settings.cloudinary_api_secret
        )

    def upload_report(self, file: Any) -> str:
        """Upload a report file (PDF or image) and return its URL."""
        return self._upload(file, folder=REPORT_FOLDER, resource_type="auto")

    def upload_image(self, file: Any) -> str:
        """Upload a test image and return its URL."""
        return self._upload(file, folder=IMAGE_FOLDER, resource_type="image")

    def _upload(self, file: Any, folder: str, resource_type: str) -> str:
        if not self.configured:
            raise UploadException("File storage is not configured")
        try:
            result = cloudinary.uploader.upload(
                file,
                folder=folder,
                resource_type=resource_type
            )
        except cloudinary.exceptions.Error as e:
            logger.error(f"Cloudinary API error during upload to {folder}: {str(e)}")
            raise UploadException(f"Upload to {folder} failed: {str(e)}")

        secure_url = result.get("secure_url")
        if not secure_url:
            logger.error("Cloudinary upload result did not contain a secure_url.")
            raise UploadException(f"Upload to {folder} returned no URL")
        logger.info(f"Successfully uploaded file to Cloudinary. URL: {secure_url}")
        return secure_url


_storage: Optional[CloudinaryStorage] = None


def init_storage(settings: Settings) -> CloudinaryStorage:
    """Create the application-wide storage client. Called at startup."""
    global _storage
    _storage = CloudinaryStorage.from_settings(settings)
    return _storage


def get_file_storage() -> CloudinaryStorage:
    """
    Storage dependency - returns the client created at startup.

    Falls back to building one from the current settings when the
    application was not started through its lifespan (e.g. scripts).
    """
    if _storage is None:
        from ...config import settings
        return init_storage(settings)
    return _storage
