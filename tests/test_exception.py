import pytest
import json
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from imagehoster import exceptions


@pytest.mark.asyncio
async def test_api_exception_handler():
    exc = exceptions.ImageNotFoundException("123")
    request = Request(scope={"type": "http"})
    response: JSONResponse = await exceptions.api_exception_handler(request, exc)

    assert response.status_code == 404
    # JSONResponse body is bytes, need to decode and parse
    body = json.loads(response.body.decode())
    assert body == {"detail": "Image with ID '123' not found."}


@pytest.mark.asyncio
async def test_api_exception_handler_includes_context():
    exc = exceptions.NotOwnerException(
        exceptions.DELETE_NOT_OWNER_MESSAGE,
        context={"image": {"image_id": "1"}, "tags": [], "comments": []},
    )
    request = Request(scope={"type": "http"})
    response: JSONResponse = await exceptions.api_exception_handler(request, exc)

    assert response.status_code == 403
    body = json.loads(response.body.decode())
    assert body == {
        "detail": "Only the owner of the image can delete the image",
        "image": {"image_id": "1"},
        "tags": [],
        "comments": [],
    }


@pytest.mark.asyncio
async def test_http_exception_handler():
    exc = HTTPException(status_code=403, detail="Forbidden")
    request = Request(scope={"type": "http"})
    response: JSONResponse = await exceptions.http_exception_handler(request, exc)

    assert response.status_code == 403
    body = json.loads(response.body.decode())
    assert body == {"detail": "Forbidden"}


@pytest.mark.asyncio
async def test_generic_exception_handler():
    exc = ValueError("Something went wrong")
    request = Request(scope={"type": "http"})
    response: JSONResponse = await exceptions.generic_exception_handler(request, exc)

    assert response.status_code == 500
    body = json.loads(response.body.decode())
    assert body == {"detail": "An unexpected error occurred."}


def test_custom_exceptions_inherit_api_exception():
    exc = exceptions.InvalidContentTypeException()
    assert isinstance(exc, exceptions.APIException)
    assert exc.status_code == 400
    assert "png, bmp, gif, jpeg and wbmp" in str(exc)


def test_not_owner_and_not_found_status_codes():
    assert exceptions.NotOwnerException("no").status_code == 403
    assert exceptions.NotOwnerException("no").context == {}
    assert exceptions.TagNotFoundException("sky").status_code == 404
    assert exceptions.DynamoDBException("boom").status_code == 500


def test_missing_user_and_s3_status_codes():
    assert exceptions.MissingUserException().status_code == 401
    assert exceptions.S3StorageException("gone").status_code == 500


def test_describe_request():
    request = Request(scope={"type": "http", "method": "DELETE", "path": "/images/1"})
    assert exceptions.describe(request) == "DELETE /images/1"
    assert exceptions.describe(Request(scope={"type": "http"})) == "? ?"
