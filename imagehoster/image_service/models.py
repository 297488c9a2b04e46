from typing import List, Optional
from datetime import date, datetime
from pydantic import BaseModel, Field
from uuid import uuid4

def new_id() -> str:
    """Generates a new unique record ID."""
    return str(uuid4())

class Tag(BaseModel):
    tag_id: str = Field(default_factory=new_id)
    name: str

class ImageSummary(BaseModel):
    """An image without its payload."""
    image_id: str = Field(default_factory=new_id)
    user_id: str
    title: Optional[str] = None
    description: Optional[str] = None
    content_type: Optional[str] = None
    tags: List[Tag] = []
    uploaded_at: datetime

class Image(ImageSummary):
    image_file: str

class Comment(BaseModel):
    comment_id: str = Field(default_factory=new_id)
    image_id: str
    user_id: str
    text: str
    created_date: date
    created_at: datetime

class Upload(BaseModel):
    """An uploaded file as declared by the client."""
    content_type: Optional[str] = None
    data: bytes = b""

class ImageDetail(BaseModel):
    image: Image
    tags: List[Tag]
    comments: List[Comment]

class ReadOnlyView(BaseModel):
    image: ImageSummary
    tags: List[Tag]
    comments: List[Comment]

class EditForm(BaseModel):
    image: ImageSummary
    tags: str

class UploadResponse(BaseModel):
    image_id: str
    user_id: str
    title: Optional[str]
    tags: List[str]
    uploaded_at: datetime

class ListImagesResponse(BaseModel):
    images: List[ImageSummary]
    next_token: Optional[str] = None
