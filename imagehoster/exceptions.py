"""
    Centralized exception handling for the FastAPI application.
"""
from typing import Any, Dict, Optional
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
import logging

log = logging.getLogger(__name__)

INVALID_CONTENT_TYPE_MESSAGE = "Please upload png, bmp, gif, jpeg and wbmp image file type"
EDIT_NOT_OWNER_MESSAGE = "Only the owner of the image can edit the image"
DELETE_NOT_OWNER_MESSAGE = "Only the owner of the image can delete the image"

class APIException(Exception):
    """
        Base class for API exceptions.
        `context` carries whatever the client needs to re-render the prior view.
    """
    def __init__(self, status_code: int, detail: str, context: Optional[Dict[str, Any]] = None):
        self.status_code = status_code
        self.detail = detail
        self.context = context or {}
        super().__init__(self.detail)

class ImageNotFoundException(APIException):
    """Exception for when an image is not found."""
    def __init__(self, image_id: str):
        super().__init__(status_code=404, detail=f"Image with ID '{image_id}' not found.")

class TagNotFoundException(APIException):
    """Exception for an image referencing a tag that does not exist."""
    def __init__(self, name: str):
        super().__init__(status_code=404, detail=f"Tag '{name}' not found.")

class InvalidContentTypeException(APIException):
    """Exception for uploads whose declared media type is not accepted."""
    def __init__(self, detail: str = INVALID_CONTENT_TYPE_MESSAGE):
        super().__init__(status_code=400, detail=detail)

class NotOwnerException(APIException):
    """Exception for a user mutating an image they do not own."""
    def __init__(self, detail: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(status_code=403, detail=detail, context=context)

class MissingUserException(APIException):
    """Exception for a mutation without an acting user."""
    def __init__(self):
        super().__init__(status_code=401, detail="A non-empty X-User-Id header is required.")

class S3StorageException(APIException):
    """Exception for S3 payload failures."""
    def __init__(self, detail: str):
        super().__init__(status_code=500, detail=detail)

class DynamoDBException(APIException):
    """Exception for DynamoDB failures."""
    def __init__(self, detail: str):
        super().__init__(status_code=500, detail=detail)

def describe(request: Request) -> str:
    """Method and path of the failed request, as far as the scope has them."""
    return f"{request.scope.get('method', '?')} {request.scope.get('path', '?')}"

async def api_exception_handler(request: Request, exc: APIException):
    """Handles API exceptions."""
    log.error(f"API Exception on {describe(request)}: {exc.detail}", exc_info=exc)
    content = {"detail": exc.detail}
    content.update(exc.context)
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
    )

async def http_exception_handler(request: Request, exc: HTTPException):
    """Handles FastAPI HTTP exceptions."""
    log.error(f"HTTP Exception on {describe(request)}: {exc.detail}", exc_info=exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )

async def generic_exception_handler(request: Request, exc: Exception):
    """Handles all other exceptions."""
    log.error(f"Unhandled Exception on {describe(request)}: {str(exc)}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred."},
    )

def add_exception_handlers(app):
    """Adds exception handlers to the FastAPI app."""
    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
