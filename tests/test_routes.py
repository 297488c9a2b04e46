import io
import base64
from PIL import Image


def make_png_bytes(color="blue"):
    img = Image.new("RGB", (10, 10), color=color)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def as_user(user_id):
    return {"X-User-Id": user_id}


def upload(test_client, user_id="u1", tags="", title="MyPic", data=None, content_type="image/png"):
    files = {"file": ("f.png", data if data is not None else make_png_bytes(), content_type)}
    return test_client.post(
        "/images",
        data={"title": title, "tags": tags},
        files=files,
        headers=as_user(user_id),
    )


def test_health(test_client):
    resp = test_client.get("/")
    assert resp.status_code == 200


# ------------------------------
# /images [POST]
# ------------------------------

def test_upload_image_success(test_client):
    resp = upload(test_client, tags="nature, sky")
    assert resp.status_code == 201
    body = resp.json()
    assert "image_id" in body
    assert body["user_id"] == "u1"
    assert body["tags"] == ["nature", "sky"]
    assert resp.headers["X-Content-Type-Options"] == "nosniff"


def test_upload_invalid_file_type(test_client):
    resp = upload(test_client, data=b"notimg", content_type="text/plain")
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Please upload png, bmp, gif, jpeg and wbmp image file type"

    listing = test_client.get("/images")
    assert listing.json()["images"] == []


def test_upload_without_file(test_client):
    resp = test_client.post("/images", data={"title": "x", "tags": ""}, headers=as_user("u1"))
    assert resp.status_code == 400


def test_upload_requires_acting_user(test_client):
    files = {"file": ("f.png", make_png_bytes(), "image/png")}
    resp = test_client.post("/images", data={"tags": ""}, files=files)
    assert resp.status_code == 401


def test_blank_acting_user_is_rejected_before_storage(test_client):
    for blank in ["", "   "]:
        resp = upload(test_client, user_id=blank, tags="sky")
        assert resp.status_code == 401
        assert resp.json()["detail"] == "A non-empty X-User-Id header is required."

    assert test_client.get("/images").json()["images"] == []
    img_id = upload(test_client, user_id="owner").json()["image_id"]
    assert test_client.delete(f"/images/{img_id}", headers=as_user("")).status_code == 401
    assert test_client.get(f"/images/{img_id}").status_code == 200


# ------------------------------
# /images/{id} [GET], /images/{id}/file [GET]
# ------------------------------

def test_get_image_detail_and_file(test_client):
    data = make_png_bytes()
    img_id = upload(test_client, tags="sky", data=data).json()["image_id"]

    resp = test_client.get(f"/images/{img_id}")
    assert resp.status_code == 200
    body = resp.json()
    assert body["image"]["image_id"] == img_id
    assert base64.b64decode(body["image"]["image_file"]) == data
    assert [t["name"] for t in body["tags"]] == ["sky"]
    assert body["comments"] == []

    raw = test_client.get(f"/images/{img_id}/file")
    assert raw.status_code == 200
    assert raw.headers["content-type"] == "image/png"
    assert raw.content == data


def test_get_nonexistent_image(test_client):
    resp = test_client.get("/images/nope")
    assert resp.status_code == 404


# ------------------------------
# /images/{id}/edit [GET], /images/{id} [PUT]
# ------------------------------

def test_edit_form_for_owner(test_client):
    img_id = upload(test_client, user_id="owner", tags="nature,sky").json()["image_id"]
    resp = test_client.get(f"/images/{img_id}/edit", headers=as_user("owner"))
    assert resp.status_code == 200
    assert resp.json()["tags"] == "nature,sky"


def test_edit_form_for_non_owner(test_client):
    img_id = upload(test_client, user_id="owner", tags="nature").json()["image_id"]
    resp = test_client.get(f"/images/{img_id}/edit", headers=as_user("other"))
    assert resp.status_code == 403
    body = resp.json()
    assert body["detail"] == "Only the owner of the image can edit the image"
    assert body["image"]["image_id"] == img_id
    assert [t["name"] for t in body["tags"]] == ["nature"]
    assert body["comments"] == []


def test_edit_without_new_file_keeps_image(test_client):
    data = make_png_bytes()
    img_id = upload(test_client, user_id="owner", tags="old", data=data).json()["image_id"]

    resp = test_client.put(
        f"/images/{img_id}",
        data={"title": "Renamed", "tags": "new,tags"},
        headers=as_user("owner"),
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["image_id"] == img_id
    assert body["title"] == "Renamed"
    assert [t["name"] for t in body["tags"]] == ["new", "tags"]

    raw = test_client.get(f"/images/{img_id}/file")
    assert raw.content == data


def test_edit_with_new_file(test_client):
    img_id = upload(test_client, user_id="owner").json()["image_id"]
    new_data = make_png_bytes(color="green")

    resp = test_client.put(
        f"/images/{img_id}",
        data={"title": "Green", "tags": ""},
        files={"file": ("g.png", new_data, "image/png")},
        headers=as_user("owner"),
    )
    assert resp.status_code == 200
    assert test_client.get(f"/images/{img_id}/file").content == new_data


def test_edit_by_non_owner_is_forbidden(test_client):
    img_id = upload(test_client, user_id="owner", title="Mine").json()["image_id"]

    resp = test_client.put(
        f"/images/{img_id}",
        data={"title": "Stolen", "tags": ""},
        headers=as_user("thief"),
    )
    assert resp.status_code == 403

    body = test_client.get(f"/images/{img_id}").json()
    assert body["image"]["user_id"] == "owner"
    assert body["image"]["title"] == "Mine"


def test_edit_nonexistent_image(test_client):
    resp = test_client.put("/images/nope", data={"tags": ""}, headers=as_user("u1"))
    assert resp.status_code == 404


# ------------------------------
# /images/{id} [DELETE]
# ------------------------------

def test_delete_by_non_owner_then_owner(test_client):
    img_id = upload(test_client, user_id="A", tags="nature,sky", title="sunset").json()["image_id"]

    rejected = test_client.delete(f"/images/{img_id}", headers=as_user("B"))
    assert rejected.status_code == 403
    body = rejected.json()
    assert body["detail"] == "Only the owner of the image can delete the image"
    assert [t["name"] for t in body["tags"]] == ["nature", "sky"]

    still_there = test_client.get(f"/images/{img_id}")
    assert still_there.status_code == 200
    assert [t["name"] for t in still_there.json()["tags"]] == ["nature", "sky"]

    deleted = test_client.delete(f"/images/{img_id}", headers=as_user("A"))
    assert deleted.status_code == 204
    assert test_client.get(f"/images/{img_id}").status_code == 404


def test_delete_nonexistent_image(test_client):
    resp = test_client.delete("/images/nope", headers=as_user("u1"))
    assert resp.status_code == 404


# ------------------------------
# /images [GET list]
# ------------------------------

def test_list_images(test_client):
    upload(test_client, user_id="list1", tags="sky")
    upload(test_client, user_id="list1", tags="sea")
    upload(test_client, user_id="list2", tags="sky")

    resp = test_client.get("/images", params={"user_id": "list1"})
    assert resp.status_code == 200
    body = resp.json()
    assert len(body["images"]) == 2
    assert all("image_file" not in i for i in body["images"])

    resp = test_client.get("/images", params={"tag": "sky"})
    assert {i["user_id"] for i in resp.json()["images"]} == {"list1", "list2"}


def test_list_images_invalid_start_key(test_client):
    resp = test_client.get("/images", params={"exclusive_start_key": "{not json"})
    assert resp.status_code == 400


def test_list_images_invalid_limit(test_client):
    resp = test_client.get("/images", params={"limit": 0})
    assert resp.status_code == 422


# ------------------------------
# /images/{id}/comments [POST]
# ------------------------------

def test_add_comment(test_client):
    img_id = upload(test_client, user_id="owner").json()["image_id"]

    resp = test_client.post(f"/images/{img_id}/comments", data={"comment": "Lovely"}, headers=as_user("fan"))
    assert resp.status_code == 201
    assert resp.json()["user_id"] == "fan"

    comments = test_client.get(f"/images/{img_id}").json()["comments"]
    assert [c["text"] for c in comments] == ["Lovely"]


def test_add_comment_to_nonexistent_image(test_client):
    resp = test_client.post("/images/nope/comments", data={"comment": "hi"}, headers=as_user("fan"))
    assert resp.status_code == 404
