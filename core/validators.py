"""
Custom validators for marketplace models.
"""

from django.core.exceptions import ValidationError


def validate_avatar_image(image):
    """
    Validate an uploaded avatar.

    Checks:
    - File size (max 5MB)
    - File extension (jpg, jpeg, png, webp)
    - MIME type when the upload carries one

    Args:
        image: UploadedFile object

    Raises:
        ValidationError: If image is invalid
    """
    if not image:
        return

    max_size = 5 * 1024 * 1024
    if image.size > max_size:
        raise ValidationError(
            f'Avatar file size cannot exceed 5MB. Current size: {image.size / (1024 * 1024):.2f}MB',
            code='image_too_large'
        )

    valid_extensions = ['jpg', 'jpeg', 'png', 'webp']
    if not any(image.name.lower().endswith(f'.{ext}') for ext in valid_extensions):
        raise ValidationError(
            f'Invalid image format. Allowed formats: {", ".join(valid_extensions)}',
            code='invalid_image_format'
        )

    content_type = getattr(image, 'content_type', None)
    if content_type and content_type not in ('image/jpeg', 'image/png', 'image/webp'):
        raise ValidationError(
            f'Invalid image content type: {content_type}',
            code='invalid_content_type'
        )


def validate_image_references(value):
    """
    Validate the ordered list of image references attached to a listing.

    A listing needs at least one image, and every entry must be a non-empty
    string (a stored filename or URL).
    """
    if not isinstance(value, list) or not value:
        raise ValidationError(
            'At least one image is required.',
            code='images_required'
        )

    for reference in value:
        if not isinstance(reference, str) or not reference.strip():
            raise ValidationError(
                'Image references must be non-empty strings.',
                code='invalid_image_reference'
            )


def find_banned_words(text, banned_words):
    """
    Return the banned words that occur in ``text`` (case-insensitive).
    """
    if not text or not banned_words:
        return []
    lowered = text.lower()
    return [word for word in banned_words if word and word.lower() in lowered]
