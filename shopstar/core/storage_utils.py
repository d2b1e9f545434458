# shopstar/core/storage_utils.py
import uuid

from shopstar.core.config import Settings
from shopstar.core.supabase_client import supabase_admin


def _bucket(settings: Settings):
    if not settings.storage_enabled:
        raise RuntimeError(
            "Supabase Storage is not configured. "
            "Please set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY in .env."
        )
    client = supabase_admin(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
    return client.storage.from_(settings.SUPABASE_STORAGE_BUCKET)


def upload_to_storage(
    settings: Settings,
    path: str,
    file_bytes: bytes,
    content_type: str,
) -> str:
    """
    Upload raw bytes to Supabase Storage and return a public URL.

    If a file already exists at this path, it will be overwritten
    thanks to the 'upsert' option.

    Args:
        path: Full object path inside the bucket.
              Example: "products/<uuid>/<uuid>.png"
        file_bytes: File content in bytes.
        content_type: MIME type stored with the object.

    Raises:
        RuntimeError if storage is not configured; any exception raised
        by the Supabase client if upload fails.
    """
    bucket = _bucket(settings)
    bucket.upload(path, file_bytes, {"upsert": "true", "content-type": content_type})
    return bucket.get_public_url(path)


def delete_from_storage(settings: Settings, path: str) -> None:
    """
    Delete a file from Supabase Storage by its object path.

    Example path (relative to bucket):
        'products/<uuid>/<uuid>.png'
    """
    _bucket(settings).remove([path])


def extract_path_from_public_url(settings: Settings, url: str) -> str | None:
    """
    Given a public URL, extract the object path relative to the bucket.

    Example:
        https://<proj>.supabase.co/storage/v1/object/public/assets/products/p/x.png
        -> 'products/p/x.png'
    """
    marker = f"/storage/v1/object/public/{settings.SUPABASE_STORAGE_BUCKET}/"
    idx = url.find(marker)
    if idx == -1:
        return None
    return url[idx + len(marker) :]


def delete_public_url(settings: Settings, url: str) -> None:
    """
    Convenience helper: delete a file by its public URL.
    No-op if the URL does not belong to this bucket.
    """
    path = extract_path_from_public_url(settings, url)
    if path:
        delete_from_storage(settings, path)


def generate_filename(ext: str) -> str:
    """
    Generate a random filename using UUID4.

    Args:
        ext: File extension without dot (e.g. "png", "jpg")

    Returns:
        A filename like "<uuid4>.png"
    """
    return f"{uuid.uuid4()}.{ext}"
