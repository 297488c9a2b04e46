from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional

class Settings(BaseSettings):
    aws_region: str = Field("us-east-1", env="AWS_REGION")
    aws_endpoint_url: Optional[str] = Field(None, env="AWS_ENDPOINT_URL")
    aws_access_key_id: str = Field("test", env="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: str = Field("test", env="AWS_SECRET_ACCESS_KEY")

    s3_bucket: str = Field("image-hoster-bucket", env="S3_BUCKET")
    payload_prefix: str = Field("payloads", env="PAYLOAD_PREFIX")

    images_table: str = Field("Images", env="IMAGES_TABLE")
    tags_table: str = Field("Tags", env="TAGS_TABLE")
    comments_table: str = Field("Comments", env="COMMENTS_TABLE")

    default_page_size: int = Field(50, env="DEFAULT_PAGE_SIZE")
    app_title: str = Field("Image Hoster", env="APP_TITLE")

    class Config:
        env_file = ".env"
        extra = "allow"

settings = Settings()
