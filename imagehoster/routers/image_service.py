from fastapi import APIRouter, Depends, UploadFile, File, Form, Query, Response
from typing import Optional
import json
import logging

from imagehoster.storage.dynamodb import DynamoDBService
from imagehoster.storage.s3 import S3Service
from imagehoster.dependencies.dependencies import get_dynamodb_service, get_s3_service, get_current_user_id
from imagehoster.image_service import service
from imagehoster.image_service.models import (
    Comment,
    EditForm,
    Image,
    ImageDetail,
    ListImagesResponse,
    Upload,
    UploadResponse,
)
from imagehoster.image_service.payload import decode_payload
from imagehoster.exceptions import APIException
from imagehoster.settings import settings

log = logging.getLogger(__name__)

router = APIRouter(
    prefix="/images",
    tags=["image-hoster"]
)

async def to_upload(file: Optional[UploadFile]) -> Optional[Upload]:
    """Reads the multipart file, if one was sent."""
    if file is None:
        return None
    contents = await file.read()
    return Upload(content_type=file.content_type, data=contents)

@router.get("", response_model=ListImagesResponse)
def list_images_handler(
    user_id: Optional[str] = Query(None),
    tag: Optional[str] = Query(None),
    limit: int = Query(settings.default_page_size, ge=1, le=100),
    exclusive_start_key: Optional[str] = Query(None),
    db: DynamoDBService = Depends(get_dynamodb_service)
):
    """Lists image metadata with optional owner and tag filters; files are served by /{image_id}/file."""
    eks = None
    if exclusive_start_key:
        try:
            eks = json.loads(exclusive_start_key)
        except ValueError:
            raise APIException(status_code=400, detail="invalid exclusive_start_key")

    images, next_key = service.list_images(db=db, user_id=user_id, tag=tag, limit=limit, exclusive_start_key=eks)
    return ListImagesResponse(images=images, next_token=json.dumps(next_key) if next_key else None)

@router.post("", response_model=UploadResponse, status_code=201)
async def upload_image(
    file: Optional[UploadFile] = File(None),
    tags: str = Form(""),  # Comma Separated Values
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    response: Response = None,
    user_id: str = Depends(get_current_user_id),
    db: DynamoDBService = Depends(get_dynamodb_service),
    s3: S3Service = Depends(get_s3_service)
):
    """Uploads an image owned by the acting user."""
    # Add security header
    if response:
        response.headers["X-Content-Type-Options"] = "nosniff"

    image = service.create_image(
        db=db,
        s3=s3,
        acting_user_id=user_id,
        upload=await to_upload(file),
        tag_string=tags,
        title=title,
        description=description,
    )
    return UploadResponse(
        image_id=image.image_id,
        user_id=image.user_id,
        title=image.title,
        tags=[tag.name for tag in image.tags],
        uploaded_at=image.uploaded_at,
    )

@router.get("/{image_id}", response_model=ImageDetail)
def get_image(
    image_id: str,
    db: DynamoDBService = Depends(get_dynamodb_service),
    s3: S3Service = Depends(get_s3_service)
):
    """Gets an image with its tags and comments."""
    return service.get_image_detail(db, s3, image_id)

@router.get("/{image_id}/file")
def get_image_file(
    image_id: str,
    db: DynamoDBService = Depends(get_dynamodb_service),
    s3: S3Service = Depends(get_s3_service)
):
    """Serves the stored image bytes."""
    image = service.get_image(db, s3, image_id)
    return Response(
        content=decode_payload(image.image_file),
        media_type=image.content_type or "application/octet-stream",
        headers={"X-Content-Type-Options": "nosniff"},
    )

@router.get("/{image_id}/edit", response_model=EditForm)
def edit_image_form(
    image_id: str,
    user_id: str = Depends(get_current_user_id),
    db: DynamoDBService = Depends(get_dynamodb_service)
):
    """Gets the image and its tag string for editing; owner only."""
    return service.get_edit_form(db, image_id, user_id)

@router.put("/{image_id}", response_model=Image)
async def edit_image(
    image_id: str,
    file: Optional[UploadFile] = File(None),
    tags: str = Form(""),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    user_id: str = Depends(get_current_user_id),
    db: DynamoDBService = Depends(get_dynamodb_service),
    s3: S3Service = Depends(get_s3_service)
):
    """
    Replaces an image's metadata and tags.

    The stored image file is kept unless a new, non-empty file is sent.
    """
    return service.update_image(
        db=db,
        s3=s3,
        image_id=image_id,
        acting_user_id=user_id,
        upload=await to_upload(file),
        tag_string=tags,
        title=title,
        description=description,
    )

@router.delete("/{image_id}", status_code=204)
def delete_image(
    image_id: str,
    user_id: str = Depends(get_current_user_id),
    db: DynamoDBService = Depends(get_dynamodb_service),
    s3: S3Service = Depends(get_s3_service)
):
    """Deletes an image, its comments and its file; owner only."""
    service.delete_image(db, s3, image_id, user_id)
    return Response(status_code=204)

@router.post("/{image_id}/comments", response_model=Comment, status_code=201)
def add_comment(
    image_id: str,
    comment: str = Form(...),
    user_id: str = Depends(get_current_user_id),
    db: DynamoDBService = Depends(get_dynamodb_service)
):
    """Posts a comment on an image."""
    return service.add_comment(db, image_id, user_id, comment)
