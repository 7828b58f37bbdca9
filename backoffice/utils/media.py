"""Public URL helpers for object-storage images."""
from flask import current_app


def public_object_url(object_path):
    """
    Get dynamic public URL for an image stored in object storage.

    Handles:
    1. Legacy full URLs (starts with http) - returns as is
    2. Relative paths (object keys) - joins with S3_PUBLIC_URL and bucket
    3. No image - returns None
    """
    if not object_path:
        return None

    if object_path.startswith(('http://', 'https://')):
        return object_path

    public_url = current_app.config.get('S3_PUBLIC_URL', 'http://localhost:9000')
    bucket = current_app.config.get('S3_BUCKET', 'uploads')

    # Ensure no double slashes when joining
    base = public_url.rstrip('/')
    collection = bucket.strip('/')
    path = object_path.lstrip('/')

    return f"{base}/{collection}/{path}"


def placeholder_image_url():
    """URL used when a product or category has no image."""
    return current_app.config.get('PLACEHOLDER_IMAGE_URL', '/static/images/placeholder.webp')
