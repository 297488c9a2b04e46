from typing import Optional
from fastapi import Header, Request
from imagehoster.storage.dynamodb import DynamoDBService
from imagehoster.storage.s3 import S3Service
from imagehoster.exceptions import MissingUserException

def get_s3_service(request: Request) -> S3Service:
    """Dependency provider for S3Service"""
    return request.app.state.s3

def get_dynamodb_service(request: Request) -> DynamoDBService:
    """Dependency provider for DynamoDBService"""
    return request.app.state.db

def get_current_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> str:
    """The already authenticated user acting on this request."""
    if not x_user_id or not x_user_id.strip():
        raise MissingUserException()
    return x_user_id
