from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional
import logging
from botocore.exceptions import BotoCoreError, ClientError
from fastapi.encoders import jsonable_encoder

from imagehoster.storage.dynamodb import DynamoDBService, is_conditional_check_failure
from imagehoster.storage.s3 import S3Service
from imagehoster.image_service.models import (
    Comment,
    EditForm,
    Image,
    ImageDetail,
    ImageSummary,
    ReadOnlyView,
    Tag,
    Upload,
    new_id,
)
from imagehoster.image_service import tags as tag_normalizer
from imagehoster.image_service.ownership import is_owner
from imagehoster.image_service.payload import has_new_file, resolve_payload
from imagehoster.settings import settings
from imagehoster.exceptions import (
    DELETE_NOT_OWNER_MESSAGE,
    EDIT_NOT_OWNER_MESSAGE,
    DynamoDBException,
    ImageNotFoundException,
    NotOwnerException,
    S3StorageException,
    TagNotFoundException,
)

log = logging.getLogger(__name__)

# ------------------------------
# Tags
# ------------------------------

def lookup_tag(db: DynamoDBService, name: str) -> Optional[Tag]:
    """Gets a tag by its exact name."""
    try:
        item = db.get_tag(name)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB get_tag failed: {e}")
        raise DynamoDBException(f"Failed to get tag: {e}")
    return Tag(**item) if item else None

def create_tag(db: DynamoDBService, name: str) -> Tag:
    """Creates a tag, or returns the stored one if the name was taken meanwhile."""
    try:
        item = db.create_tag(Tag(name=name).model_dump())
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB create_tag failed: {e}")
        raise DynamoDBException(f"Failed to create tag: {e}")
    return Tag(**item)

def find_or_create_tags(db: DynamoDBService, tag_string: Optional[str]) -> List[Tag]:
    return tag_normalizer.normalize(
        tag_string,
        lookup_by_name=lambda name: lookup_tag(db, name),
        create_tag=lambda name: create_tag(db, name),
    )

# ------------------------------
# Payloads
# ------------------------------

def payload_key(image_id: str) -> str:
    """Every stored payload gets a fresh key, so a replaced one survives a failed update."""
    return f"{settings.payload_prefix}/{image_id}/{new_id()}"

def store_payload(s3: S3Service, key: str, payload: str):
    try:
        s3.put_payload(key, payload)
    except (BotoCoreError, ClientError) as e:
        log.error(f"S3 put_payload failed: {e}")
        raise S3StorageException(f"Failed to store image file: {e}")

def fetch_payload(s3: S3Service, key: str) -> str:
    try:
        return s3.get_payload(key)
    except (BotoCoreError, ClientError) as e:
        log.error(f"S3 get_payload failed: {e}")
        raise S3StorageException(f"Failed to read image file: {e}")

def discard_payload(s3: S3Service, key: str):
    """Removes a payload no image references; a failure only leaves an orphaned object."""
    try:
        s3.delete(key)
    except (BotoCoreError, ClientError) as e:
        log.error(f"S3 delete of orphaned payload {key} failed: {e}")

# ------------------------------
# Images
# ------------------------------

def to_item(image: ImageSummary, s3_key: str) -> Dict[str, Any]:
    """Images reference their tags by name and their payload by S3 key."""
    item = image.model_dump(exclude={"image_file"})
    item["tags"] = [tag.name for tag in image.tags]
    item["s3_key"] = s3_key
    # Dynamo needs uploaded_at as ISO string
    item["uploaded_at"] = item["uploaded_at"].isoformat()
    return item

def to_summary(db: DynamoDBService, item: Dict[str, Any]) -> ImageSummary:
    tags = []
    for name in item.get("tags", []):
        tag = lookup_tag(db, name)
        if tag is None:
            raise TagNotFoundException(name)
        tags.append(tag)
    return ImageSummary(
        image_id=item["image_id"],
        user_id=item["user_id"],
        title=item.get("title"),
        description=item.get("description"),
        content_type=item.get("content_type"),
        tags=tags,
        uploaded_at=datetime.fromisoformat(item["uploaded_at"]),
    )

def load_image_item(db: DynamoDBService, image_id: str) -> Dict[str, Any]:
    try:
        item = db.get_image(image_id)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB get_image failed: {e}")
        raise DynamoDBException(f"Failed to get image: {e}")
    if not item:
        raise ImageNotFoundException(image_id)
    return item

def get_image_summary(db: DynamoDBService, image_id: str) -> ImageSummary:
    """Gets an image with its tags resolved, without its payload."""
    return to_summary(db, load_image_item(db, image_id))

def get_image(db: DynamoDBService, s3: S3Service, image_id: str) -> Image:
    """Gets an image with its tags and payload."""
    item = load_image_item(db, image_id)
    summary = to_summary(db, item)
    return Image(**summary.model_dump(), image_file=fetch_payload(s3, item["s3_key"]))

def list_images(
    db: DynamoDBService,
    user_id: Optional[str] = None,
    tag: Optional[str] = None,
    limit: int = 50,
    exclusive_start_key: Optional[Dict[str, str]] = None
):
    """Fetches one page of image summaries with optional owner and tag filters."""
    try:
        resp = db.scan_images(user_id=user_id, tag=tag, limit=limit, exclusive_start_key=exclusive_start_key)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB scan_images failed: {e}")
        raise DynamoDBException(f"Failed to fetch images: {e}")
    images = [to_summary(db, item) for item in resp.get("Items", [])]
    return images, resp.get("LastEvaluatedKey")

def get_image_detail(db: DynamoDBService, s3: S3Service, image_id: str) -> ImageDetail:
    image = get_image(db, s3, image_id)
    return ImageDetail(image=image, tags=image.tags, comments=list_comments(db, image_id))

def read_only_view(db: DynamoDBService, image: ImageSummary) -> Dict[str, Any]:
    """The data a rejected mutation hands back so the image page can be shown."""
    view = ReadOnlyView(image=image, tags=image.tags, comments=list_comments(db, image.image_id))
    return jsonable_encoder(view)

def get_edit_form(db: DynamoDBService, image_id: str, acting_user_id: str) -> EditForm:
    """Returns the image and its tag string, for the owner only."""
    image = get_image_summary(db, image_id)
    if not is_owner(image, acting_user_id):
        log.warning("User %s may not edit image %s", acting_user_id, image_id)
        raise NotOwnerException(EDIT_NOT_OWNER_MESSAGE, context=read_only_view(db, image))
    return EditForm(image=image, tags=tag_normalizer.stringify(image.tags))

def create_image(
    db: DynamoDBService,
    s3: S3Service,
    acting_user_id: str,
    upload: Optional[Upload],
    tag_string: Optional[str],
    title: Optional[str] = None,
    description: Optional[str] = None,
) -> Image:
    """Stores a newly uploaded image owned by the acting user."""
    # Validated before tags are written
    payload = resolve_payload(upload)
    image = Image(
        user_id=acting_user_id,
        title=title,
        description=description,
        image_file=payload,
        content_type=upload.content_type,
        tags=find_or_create_tags(db, tag_string),
        uploaded_at=datetime.now(timezone.utc),
    )
    key = payload_key(image.image_id)
    store_payload(s3, key, payload)
    try:
        db.put_image(to_item(image, key))
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB put_image failed: {e}")
        discard_payload(s3, key)
        raise DynamoDBException(f"Failed to save image: {e}")

    log.info("Saved image %s for user %s", image.image_id, acting_user_id)
    return image

def update_image(
    db: DynamoDBService,
    s3: S3Service,
    image_id: str,
    acting_user_id: str,
    upload: Optional[Upload],
    tag_string: Optional[str],
    title: Optional[str] = None,
    description: Optional[str] = None,
) -> Image:
    """
        Replaces an image's title, description and tags, and its payload when
        a new non-empty file is supplied. Only the owner may update.
    """
    item = load_image_item(db, image_id)
    existing = to_summary(db, item)
    if not is_owner(existing, acting_user_id):
        log.warning("User %s may not edit image %s", acting_user_id, image_id)
        raise NotOwnerException(EDIT_NOT_OWNER_MESSAGE, context=read_only_view(db, existing))

    replacing = has_new_file(upload)
    prior_payload = None if replacing else fetch_payload(s3, item["s3_key"])
    payload = resolve_payload(upload, prior_payload=prior_payload)

    updated = Image(
        image_id=image_id,
        user_id=acting_user_id,
        title=title,
        description=description,
        image_file=payload,
        content_type=upload.content_type if replacing else existing.content_type,
        tags=find_or_create_tags(db, tag_string),
        uploaded_at=datetime.now(timezone.utc),
    )
    key = item["s3_key"]
    if replacing:
        key = payload_key(image_id)
        store_payload(s3, key, payload)
    try:
        db.replace_image(to_item(updated, key))
    except (BotoCoreError, ClientError) as e:
        if replacing:
            discard_payload(s3, key)
        if isinstance(e, ClientError) and is_conditional_check_failure(e):
            raise ImageNotFoundException(image_id)
        log.error(f"DynamoDB replace_image failed: {e}")
        raise DynamoDBException(f"Failed to update image: {e}")

    if replacing:
        discard_payload(s3, item["s3_key"])
    log.info("Updated image %s", image_id)
    return updated

def delete_image(db: DynamoDBService, s3: S3Service, image_id: str, acting_user_id: str):
    """Removes an image, its comments and its payload. Only the owner may delete."""
    item = load_image_item(db, image_id)
    existing = to_summary(db, item)
    if not is_owner(existing, acting_user_id):
        log.warning("User %s may not delete image %s", acting_user_id, image_id)
        raise NotOwnerException(DELETE_NOT_OWNER_MESSAGE, context=read_only_view(db, existing))

    try:
        db.delete_image(image_id)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB delete_image failed: {e}")
        raise DynamoDBException(f"Failed to delete image: {e}")
    discard_payload(s3, item["s3_key"])

    log.info("Deleted image %s", image_id)
    return True

# ------------------------------
# Comments
# ------------------------------

def list_comments(db: DynamoDBService, image_id: str) -> List[Comment]:
    """Comments of an image, oldest first."""
    try:
        items = db.query_comments(image_id)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB query_comments failed: {e}")
        raise DynamoDBException(f"Failed to get comments: {e}")
    comments = [
        Comment(
            comment_id=item["comment_id"],
            image_id=item["image_id"],
            user_id=item["user_id"],
            text=item["text"],
            created_date=date.fromisoformat(item["created_date"]),
            created_at=datetime.fromisoformat(item["created_at"]),
        )
        for item in items
    ]
    return sorted(comments, key=lambda comment: (comment.created_at, comment.comment_id))

def add_comment(db: DynamoDBService, image_id: str, acting_user_id: str, text: str) -> Comment:
    get_image_summary(db, image_id)
    created_at = datetime.now(timezone.utc)
    comment = Comment(
        image_id=image_id,
        user_id=acting_user_id,
        text=text,
        created_date=created_at.date(),
        created_at=created_at,
    )
    item = comment.model_dump()
    item["created_date"] = comment.created_date.isoformat()
    item["created_at"] = comment.created_at.isoformat()
    try:
        db.put_comment(item)
    except (BotoCoreError, ClientError) as e:
        log.error(f"DynamoDB put_comment failed: {e}")
        raise DynamoDBException(f"Failed to save comment: {e}")

    log.info("Saved comment %s on image %s", comment.comment_id, image_id)
    return comment
