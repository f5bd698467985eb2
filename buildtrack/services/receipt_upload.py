# buildtrack/services/receipt_upload.py
import logging
import os
import uuid
from collections import namedtuple

from werkzeug.utils import secure_filename

from ..errors import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {
    'jpg': 'image/jpeg',
    'jpeg': 'image/jpeg',
    'png': 'image/png',
    'pdf': 'application/pdf',
}
ALLOWED_MIME_TYPES = ('image/jpeg', 'image/jpg', 'image/pjpeg', 'image/png', 'application/pdf')

StoredReceiptFile = namedtuple('StoredReceiptFile', ['original_name', 'path', 'mime_type', 'size'])


def file_extension(filename):
    if not filename or '.' not in filename:
        return ''
    return filename.rsplit('.', 1)[-1].lower()


def mime_type_for(path):
    """Content type sent to the extraction service, derived from the stored file name."""
    return ALLOWED_EXTENSIONS.get(file_extension(path), 'image/jpeg')


def _stream_size(file_storage):
    stream = file_storage.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def validate_receipt_file(file_storage, max_bytes):
    """
    Check an uploaded receipt before anything touches the disk.

    Args:
        file_storage (werkzeug.datastructures.FileStorage | None): The uploaded file
        max_bytes (int): Largest accepted file size

    Returns:
        tuple: (extension, size in bytes)

    Raises:
        ValidationError: Missing file, unsupported type, empty or too large
    """
    if file_storage is None or not file_storage.filename:
        raise ValidationError('No file uploaded')

    extension = file_extension(file_storage.filename)
    content_type = (file_storage.mimetype or '').lower()
    if extension not in ALLOWED_EXTENSIONS or content_type not in ALLOWED_MIME_TYPES:
        logger.warning(f"Rejected receipt upload '{file_storage.filename}' ({content_type or 'no content type'})")
        raise ValidationError('Only images (jpeg, jpg, png) and PDFs are allowed')

    size = _stream_size(file_storage)
    if size == 0:
        raise ValidationError('Receipt file is empty')
    if size > max_bytes:
        logger.warning(f"Rejected receipt upload '{file_storage.filename}': {size} bytes exceeds {max_bytes}")
        raise ValidationError(f'Receipt file exceeds the {max_bytes // (1024 * 1024)}MB limit')

    return extension, size


def save_receipt_file(file_storage, upload_folder, max_bytes):
    """Validate and store an uploaded receipt under a generated name."""
    extension, size = validate_receipt_file(file_storage, max_bytes)

    os.makedirs(upload_folder, exist_ok=True)
    filename = f"{uuid.uuid4().hex}.{extension}"
    file_path = os.path.join(upload_folder, filename)
    file_storage.save(file_path)

    logger.info(f"Receipt file saved to {file_path} with size {size} bytes")

    original_name = (secure_filename(file_storage.filename) or f"receipt.{extension}")[:255]
    return StoredReceiptFile(original_name, file_path, ALLOWED_EXTENSIONS[extension], size)
