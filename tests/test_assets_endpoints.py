from urllib.parse import parse_qs, urlsplit

from conftest import PNG_BYTES, auth_headers, signup_token, upload, upload_ok


def _content_path(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.path}?{parts.query}"


def test_upload_private_asset_returns_owner_view(client, storage):
    token = signup_token(client, "owner@example.com")

    data = upload_ok(client, token, tags=["Summer", " beach ", "Summer"], name="Holiday")

    assert data["name"] == "Holiday"
    assert data["type"] == "image"
    assert data["visibility"] == "private"
    assert data["has_pin"] is False
    assert data["share_token"] is None
    assert data["tags"] == ["Summer", "beach"]
    assert data["size_bytes"] == len(PNG_BYTES)
    assert data["views"] == 0 and data["downloads"] == 0
    assert "pin_hash" not in data
    assert data["url"].startswith("http://testserver/api/v1/assets/content?")


def test_upload_defaults_name_to_filename(client):
    token = signup_token(client, "owner@example.com")

    data = upload_ok(client, token, filename="cover.png")

    assert data["name"] == "cover.png"


def test_upload_shared_asset_gets_share_token(client):
    token = signup_token(client, "owner@example.com")

    data = upload_ok(client, token, visibility="shared")

    assert data["visibility"] == "shared"
    assert data["share_token"]
    assert len(data["share_token"]) == 32


def test_upload_with_pin_hides_hash(client):
    token = signup_token(client, "owner@example.com")

    data = upload_ok(client, token, visibility="shared", pin="1234")

    assert data["has_pin"] is True
    assert "1234" not in str(data)


def test_upload_rejects_bad_pins(client):
    token = signup_token(client, "owner@example.com")

    short = upload(client, token, pin="12")
    long = upload(client, token, pin="1234567")

    assert short.status_code == 400
    assert short.json()["code"] == "pin_too_short"
    assert long.status_code == 400
    assert long.json()["code"] == "pin_too_long"


def test_upload_blank_pin_means_no_pin(client):
    token = signup_token(client, "owner@example.com")

    data = upload_ok(client, token, pin="   ")

    assert data["has_pin"] is False


def test_upload_pin_on_public_asset_rejected(client):
    token = signup_token(client, "owner@example.com")

    resp = upload(client, token, visibility="public", pin="1234")

    assert resp.status_code == 400
    assert resp.json()["code"] == "pin_not_applicable"


def test_upload_rejects_content_mismatch(client):
    token = signup_token(client, "owner@example.com")

    resp = upload(client, token, filename="fake.png", content=b"<html>nope</html>")

    assert resp.status_code == 400


def test_upload_rejects_script_like_extensions(client):
    token = signup_token(client, "owner@example.com")

    resp = upload(client, token, filename="page.html", content=b"<script></script>", asset_type="document")

    assert resp.status_code == 400


def test_upload_requires_authentication(client):
    resp = client.post(
        "/api/v1/assets/upload",
        files={"file": ("photo.png", PNG_BYTES, "image/png")},
        data={"type": "image"},
    )

    assert resp.status_code == 401


def test_list_assets_only_returns_own_assets(client):
    alice = signup_token(client, "alice@example.com")
    bob = signup_token(client, "bob@example.com")
    first = upload_ok(client, alice, name="first")
    second = upload_ok(client, alice, name="second")
    upload_ok(client, bob, name="bobs")

    resp = client.get("/api/v1/assets", headers=auth_headers(alice))

    assert resp.status_code == 200
    ids = [item["id"] for item in resp.json()["data"]]
    assert set(ids) == {first["id"], second["id"]}


def test_other_users_assets_look_missing(client):
    alice = signup_token(client, "alice@example.com")
    bob = signup_token(client, "bob@example.com")
    asset = upload_ok(client, alice)
    asset_id = asset["id"]

    assert client.get(f"/api/v1/assets/{asset_id}", headers=auth_headers(bob)).status_code == 404
    assert client.delete(f"/api/v1/assets/{asset_id}", headers=auth_headers(bob)).status_code == 404
    assert client.post(f"/api/v1/assets/{asset_id}/share", headers=auth_headers(bob)).status_code == 404
    assert client.delete(f"/api/v1/assets/{asset_id}/share", headers=auth_headers(bob)).status_code == 404
    assert (
        client.put(f"/api/v1/assets/{asset_id}/pin", headers=auth_headers(bob), json={"new_pin": "9999"}).status_code
        == 404
    )
    # Private asset: verify-pin from a stranger is a 404 as well.
    assert (
        client.post(f"/api/v1/assets/{asset_id}/verify-pin", headers=auth_headers(bob), json={"pin": "1234"}).status_code
        == 404
    )


def test_unknown_asset_is_not_found(client):
    token = signup_token(client, "owner@example.com")

    resp = client.get("/api/v1/assets/00000000-0000-0000-0000-000000000000", headers=auth_headers(token))

    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"


def test_delete_protected_asset_requires_pin(client, storage):
    token = signup_token(client, "owner@example.com")
    asset = upload_ok(client, token, pin="1234")
    asset_id = asset["id"]
    key = parse_qs(urlsplit(asset["url"]).query)["key"][0]
    assert storage.object_exists(key)

    missing = client.delete(f"/api/v1/assets/{asset_id}", headers=auth_headers(token))
    assert missing.status_code == 403
    assert missing.json()["code"] == "pin_required"

    wrong = client.delete(f"/api/v1/assets/{asset_id}", headers={**auth_headers(token), "x-asset-pin": "9999"})
    assert wrong.status_code == 403
    assert wrong.json()["code"] == "pin_invalid"

    ok = client.delete(f"/api/v1/assets/{asset_id}", headers={**auth_headers(token), "x-asset-pin": "1234"})
    assert ok.status_code == 200
    assert ok.json()["data"] == {"deleted": True, "id": asset_id}
    assert not storage.object_exists(key)

    assert client.get(f"/api/v1/assets/{asset_id}", headers=auth_headers(token)).status_code == 404


def test_delete_unprotected_asset_without_pin(client):
    token = signup_token(client, "owner@example.com")
    asset = upload_ok(client, token)

    resp = client.delete(f"/api/v1/assets/{asset['id']}", headers=auth_headers(token))

    assert resp.status_code == 200
    assert resp.json()["data"]["deleted"] is True


def test_generate_share_is_idempotent(client):
    token = signup_token(client, "owner@example.com")
    asset = upload_ok(client, token)

    first = client.post(f"/api/v1/assets/{asset['id']}/share", headers=auth_headers(token))
    second = client.post(f"/api/v1/assets/{asset['id']}/share", headers=auth_headers(token))

    assert first.status_code == 200
    assert first.json()["data"]["share_token"] == second.json()["data"]["share_token"]
    view = client.get(f"/api/v1/assets/{asset['id']}", headers=auth_headers(token)).json()["data"]
    assert view["visibility"] == "shared"
    assert view["share_token"] == first.json()["data"]["share_token"]


def test_revoke_share_clears_token_and_kills_link(client):
    token = signup_token(client, "owner@example.com")
    asset = upload_ok(client, token, visibility="shared")
    share_token = asset["share_token"]

    resp = client.delete(f"/api/v1/assets/{asset['id']}/share", headers=auth_headers(token))

    assert resp.status_code == 200
    assert resp.json()["data"]["share_token"] is None
    assert resp.json()["data"]["visibility"] == "private"
    assert client.get("/api/v1/share", params={"token": share_token}).status_code == 404

    regenerated = client.post(f"/api/v1/assets/{asset['id']}/share", headers=auth_headers(token))
    assert regenerated.json()["data"]["share_token"] != share_token


def test_verify_pin_endpoint(client):
    token = signup_token(client, "owner@example.com")
    asset = upload_ok(client, token, pin="1234")
    url = f"/api/v1/assets/{asset['id']}/verify-pin"

    assert client.post(url, headers=auth_headers(token), json={"pin": "1234"}).json()["data"] == {"success": True}
    assert client.post(url, headers=auth_headers(token), json={"pin": "0000"}).json()["code"] == "pin_invalid"
    assert client.post(url, headers=auth_headers(token), json={}).json()["code"] == "pin_required"


def test_verify_pin_on_shared_asset_for_other_user(client):
    alice = signup_token(client, "alice@example.com")
    bob = signup_token(client, "bob@example.com")
    asset = upload_ok(client, alice, visibility="shared", pin="1234")

    resp = client.post(f"/api/v1/assets/{asset['id']}/verify-pin", headers=auth_headers(bob), json={"pin": "1234"})

    assert resp.status_code == 200


def test_rotate_and_clear_pin(client):
    token = signup_token(client, "owner@example.com")
    asset = upload_ok(client, token, pin="1234")
    url = f"/api/v1/assets/{asset['id']}/pin"

    denied = client.put(url, headers=auth_headers(token), json={"current_pin": "0000", "new_pin": "5678"})
    assert denied.status_code == 403
    assert denied.json()["code"] == "pin_invalid"

    rotated = client.put(url, headers=auth_headers(token), json={"current_pin": "1234", "new_pin": "5678"})
    assert rotated.status_code == 200
    assert rotated.json()["data"]["has_pin"] is True

    verify = f"/api/v1/assets/{asset['id']}/verify-pin"
    assert client.post(verify, headers=auth_headers(token), json={"pin": "1234"}).status_code == 403
    assert client.post(verify, headers=auth_headers(token), json={"pin": "5678"}).status_code == 200

    cleared = client.put(url, headers=auth_headers(token), json={"current_pin": "5678", "new_pin": None})
    assert cleared.json()["data"]["has_pin"] is False


def test_set_pin_on_unprotected_asset(client):
    token = signup_token(client, "owner@example.com")
    asset = upload_ok(client, token)

    resp = client.put(f"/api/v1/assets/{asset['id']}/pin", headers=auth_headers(token), json={"new_pin": "4321"})

    assert resp.status_code == 200
    assert resp.json()["data"]["has_pin"] is True


def test_owner_url_serves_file_content(client):
    token = signup_token(client, "owner@example.com")
    asset = upload_ok(client, token)

    resp = client.get(_content_path(asset["url"]))

    assert resp.status_code == 200
    assert resp.content == PNG_BYTES
    assert resp.headers["content-type"] == "image/png"


def test_tampered_content_url_is_rejected(client):
    token = signup_token(client, "owner@example.com")
    asset = upload_ok(client, token)
    parts = urlsplit(asset["url"])
    query = parse_qs(parts.query)

    resp = client.get(
        "/api/v1/assets/content",
        params={"key": query["key"][0], "expires": query["expires"][0], "signature": "0" * 64},
    )

    assert resp.status_code == 404
    assert resp.json()["code"] == "link_invalid"


def test_content_url_of_deleted_asset_is_gone(client):
    token = signup_token(client, "owner@example.com")
    asset = upload_ok(client, token)
    client.delete(f"/api/v1/assets/{asset['id']}", headers=auth_headers(token))

    resp = client.get(_content_path(asset["url"]))

    assert resp.status_code == 404
