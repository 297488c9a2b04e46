from typing import Optional

from imagehoster.image_service.models import Image

def is_owner(image: Image, acting_user_id: Optional[str]) -> bool:
    """True iff the acting user is the image's owner."""
    if not acting_user_id:
        return False
    return image.user_id == acting_user_id
