"""Folder hierarchy, PIN protection and the verify flow."""
from docvault.core.rate_limit import RATE_LIMITS
from docvault.core.security import create_folder_access_token

from conftest import API


async def test_create_root_folder(client, create_folder):
    folder = await create_folder("Taxes")

    assert folder["name"] == "Taxes"
    assert folder["path"] == "/Taxes"
    assert folder["level"] == 0
    assert folder["parent_id"] is None
    assert folder["is_protected"] is False
    assert "hashed_password" not in folder


async def test_create_protected_root_folder(create_folder):
    folder = await create_folder("Medical", pin="4821")

    assert folder["is_protected"] is True


async def test_create_folder_rejects_mismatched_pin(client, auth_headers):
    res = await client.post(
        f"{API}/folders",
        json={"name": "Medical", "pin": "4821", "confirm_pin": "1111"},
        headers=auth_headers,
    )

    assert res.status_code == 400
    assert res.json()["errors"][0]["field"] == "confirm_pin"


async def test_create_folder_rejects_non_digit_pin(client, auth_headers):
    res = await client.post(
        f"{API}/folders",
        json={"name": "Medical", "pin": "abcd", "confirm_pin": "abcd"},
        headers=auth_headers,
    )

    assert res.status_code == 400
    assert res.json()["errors"][0]["message"] == "PIN must be 4-6 digits"


async def test_create_folder_rejects_bad_name(client, auth_headers):
    res = await client.post(f"{API}/folders", json={"name": "../etc"}, headers=auth_headers)

    assert res.status_code == 400
    assert res.json()["errors"][0]["field"] == "name"


async def test_create_subfolder_builds_path(create_folder, open_folder):
    root = await create_folder("Taxes")
    root_token = await open_folder(root["id"])

    child = await create_folder("2024", parent_id=root["id"], folder_token=root_token)

    assert child["parent_id"] == root["id"]
    assert child["path"] == "/Taxes/2024"
    assert child["level"] == 1


async def test_create_subfolder_requires_parent_token(client, auth_headers, create_folder):
    root = await create_folder("Taxes")

    res = await client.post(
        f"{API}/folders",
        json={"name": "2024", "parent_id": root["id"]},
        headers=auth_headers,
    )

    assert res.status_code == 401


async def test_subfolder_cannot_have_its_own_pin(client, create_folder, open_folder, folder_headers):
    root = await create_folder("Taxes")
    token = await open_folder(root["id"])

    res = await client.post(
        f"{API}/folders",
        json={"name": "2024", "parent_id": root["id"], "pin": "1234", "confirm_pin": "1234"},
        headers=folder_headers(token),
    )

    assert res.status_code == 400


async def test_folder_depth_is_limited(client, create_folder, open_folder, folder_headers):
    parent = await create_folder("L0")
    for level in range(1, 6):
        token = await open_folder(parent["id"])
        parent = await create_folder(f"L{level}", parent_id=parent["id"], folder_token=token)

    assert parent["level"] == 5

    token = await open_folder(parent["id"])
    res = await client.post(
        f"{API}/folders",
        json={"name": "L6", "parent_id": parent["id"]},
        headers=folder_headers(token),
    )

    assert res.status_code == 400
    assert res.json()["detail"] == "Maximum folder depth of 5 reached"


async def test_duplicate_root_names_conflict(client, auth_headers, create_folder):
    await create_folder("Taxes")

    res = await client.post(f"{API}/folders", json={"name": "Taxes"}, headers=auth_headers)

    assert res.status_code == 409


async def test_sibling_names_are_unique_per_parent(client, create_folder, open_folder, folder_headers):
    first = await create_folder("Taxes")
    second = await create_folder("Medical")
    first_token = await open_folder(first["id"])
    second_token = await open_folder(second["id"])

    await create_folder("2024", parent_id=first["id"], folder_token=first_token)
    # Same name under a different parent is fine
    await create_folder("2024", parent_id=second["id"], folder_token=second_token)

    res = await client.post(
        f"{API}/folders",
        json={"name": "2024", "parent_id": first["id"]},
        headers=folder_headers(first_token),
    )

    assert res.status_code == 409


async def test_users_can_reuse_each_others_folder_names(create_folder, register):
    other_headers = await register(username="bob")

    await create_folder("Taxes")
    folder = await create_folder("Taxes", headers=other_headers)

    assert folder["name"] == "Taxes"


async def test_list_root_folders_with_subfolder_count(client, auth_headers, create_folder, open_folder):
    root = await create_folder("Taxes")
    await create_folder("Medical")
    token = await open_folder(root["id"])
    await create_folder("2023", parent_id=root["id"], folder_token=token)
    await create_folder("2024", parent_id=root["id"], folder_token=token)

    res = await client.get(f"{API}/folders", headers=auth_headers)

    assert res.status_code == 200
    folders = {folder["name"]: folder for folder in res.json()["folders"]}
    assert set(folders) == {"Taxes", "Medical"}
    assert folders["Taxes"]["subfolder_count"] == 2
    assert folders["Medical"]["subfolder_count"] == 0


async def test_list_children_of_parent(client, auth_headers, create_folder, open_folder):
    root = await create_folder("Taxes")
    token = await open_folder(root["id"])
    await create_folder("2024", parent_id=root["id"], folder_token=token)

    res = await client.get(f"{API}/folders", params={"parent_id": root["id"]}, headers=auth_headers)

    assert res.status_code == 200
    assert [folder["name"] for folder in res.json()["folders"]] == ["2024"]


async def test_folders_are_isolated_between_users(client, create_folder, register):
    folder = await create_folder("Taxes")
    other_headers = await register(username="bob")

    listing = await client.get(f"{API}/folders", headers=other_headers)
    detail = await client.get(f"{API}/folders/{folder['id']}", headers=other_headers)
    verify = await client.post(f"{API}/folders/{folder['id']}/verify", json={}, headers=other_headers)
    delete = await client.delete(f"{API}/folders/{folder['id']}", headers=other_headers)

    assert listing.json()["folders"] == []
    assert detail.status_code == 404
    assert verify.status_code == 404
    assert delete.status_code == 404


async def test_breadcrumbs_walk_from_root(client, auth_headers, create_folder, open_folder):
    root = await create_folder("Taxes")
    token = await open_folder(root["id"])
    year = await create_folder("2024", parent_id=root["id"], folder_token=token)
    token = await open_folder(year["id"])
    quarter = await create_folder("Q1", parent_id=year["id"], folder_token=token)

    res = await client.get(f"{API}/folders/{quarter['id']}/breadcrumbs", headers=auth_headers)

    assert res.status_code == 200
    assert [crumb["name"] for crumb in res.json()["breadcrumbs"]] == ["Taxes", "2024", "Q1"]
    assert [crumb["level"] for crumb in res.json()["breadcrumbs"]] == [0, 1, 2]


async def test_rename_rewrites_descendant_paths(client, auth_headers, create_folder, open_folder):
    root = await create_folder("Taxes")
    token = await open_folder(root["id"])
    year = await create_folder("2024", parent_id=root["id"], folder_token=token)
    token = await open_folder(year["id"])
    quarter = await create_folder("Q1", parent_id=year["id"], folder_token=token)

    res = await client.patch(f"{API}/folders/{root['id']}", json={"name": "Finances"}, headers=auth_headers)

    assert res.status_code == 200
    assert res.json()["folder"]["path"] == "/Finances"

    res = await client.get(f"{API}/folders/{quarter['id']}", headers=auth_headers)
    assert res.json()["path"] == "/Finances/2024/Q1"
    assert res.json()["level"] == 2


async def test_rename_to_sibling_name_conflicts(client, auth_headers, create_folder):
    await create_folder("Taxes")
    medical = await create_folder("Medical")

    res = await client.patch(f"{API}/folders/{medical['id']}", json={"name": "Taxes"}, headers=auth_headers)

    assert res.status_code == 409


async def test_only_root_folders_take_a_password(client, auth_headers, create_folder, open_folder):
    root = await create_folder("Taxes")
    token = await open_folder(root["id"])
    child = await create_folder("2024", parent_id=root["id"], folder_token=token)

    res = await client.patch(f"{API}/folders/{child['id']}", json={"password": "secret99"}, headers=auth_headers)
    assert res.status_code == 400

    res = await client.patch(f"{API}/folders/{root['id']}", json={"password": "secret99"}, headers=auth_headers)
    assert res.status_code == 200
    assert res.json()["folder"]["is_protected"] is True


async def test_unprotected_folder_opens_without_password(client, auth_headers, create_folder):
    folder = await create_folder("Taxes")

    res = await client.post(f"{API}/folders/{folder['id']}/verify", json={}, headers=auth_headers)

    assert res.status_code == 200
    body = res.json()
    assert body["access_token"]
    assert body["expires_in"] == 3600
    assert body["folder"]["last_accessed_at"] is not None


async def test_protected_folder_requires_correct_pin(client, auth_headers, create_folder):
    folder = await create_folder("Medical", pin="4821")

    missing = await client.post(f"{API}/folders/{folder['id']}/verify", json={}, headers=auth_headers)
    wrong = await client.post(f"{API}/folders/{folder['id']}/verify", json={"password": "0000"}, headers=auth_headers)
    right = await client.post(f"{API}/folders/{folder['id']}/verify", json={"password": "4821"}, headers=auth_headers)

    assert missing.status_code == 401
    assert missing.json()["detail"] == "Folder password required"
    assert wrong.status_code == 401
    assert wrong.json()["detail"] == "Invalid password"
    assert right.status_code == 200


async def test_subfolder_opens_with_root_pin(client, auth_headers, create_folder, open_folder):
    root = await create_folder("Medical", pin="4821")
    token = await open_folder(root["id"], password="4821")
    child = await create_folder("Scans", parent_id=root["id"], folder_token=token)

    res = await client.post(f"{API}/folders/{child['id']}/verify", json={"password": "4821"}, headers=auth_headers)

    assert res.status_code == 200


async def test_subfolder_opens_with_ancestor_token(client, auth_headers, create_folder, open_folder, folder_headers):
    root = await create_folder("Medical", pin="4821")
    root_token = await open_folder(root["id"], password="4821")
    child = await create_folder("Scans", parent_id=root["id"], folder_token=root_token)
    child_token = await open_folder(child["id"], folder_token=root_token)
    grandchild = await create_folder("2024", parent_id=child["id"], folder_token=child_token)

    res = await client.post(
        f"{API}/folders/{grandchild['id']}/verify",
        json={},
        headers=folder_headers(root_token),
    )

    assert res.status_code == 200


async def test_protected_subfolder_rejects_unrelated_token(client, create_folder, open_folder, folder_headers):
    protected = await create_folder("Medical", pin="4821")
    protected_token = await open_folder(protected["id"], password="4821")
    child = await create_folder("Scans", parent_id=protected["id"], folder_token=protected_token)
    other = await create_folder("Taxes")
    other_token = await open_folder(other["id"])

    res = await client.post(
        f"{API}/folders/{child['id']}/verify",
        json={},
        headers=folder_headers(other_token),
    )

    assert res.status_code == 401


async def test_token_of_another_user_is_rejected(client, create_folder, folder_headers):
    folder = await create_folder("Medical", pin="4821")
    # Scoped to the right folder but minted for someone else
    forged = create_folder_access_token(user_id=999, folder_id=folder["id"])

    res = await client.get(
        f"{API}/folders/{folder['id']}/documents",
        headers=folder_headers(forged),
    )

    assert res.status_code == 401


async def test_folder_password_attempts_are_rate_limited(client, auth_headers, create_folder):
    folder = await create_folder("Medical", pin="4821")
    limit = RATE_LIMITS["folder_password"].max_requests

    for _ in range(limit):
        res = await client.post(f"{API}/folders/{folder['id']}/verify", json={"password": "0000"}, headers=auth_headers)
        assert res.status_code == 401

    res = await client.post(f"{API}/folders/{folder['id']}/verify", json={"password": "4821"}, headers=auth_headers)

    assert res.status_code == 429
    assert int(res.headers["Retry-After"]) > 0


async def test_password_limit_is_shared_across_the_tree(client, auth_headers, create_folder, open_folder):
    root = await create_folder("Medical", pin="4821")
    token = await open_folder(root["id"], password="4821")
    child = await create_folder("Scans", parent_id=root["id"], folder_token=token)
    limit = RATE_LIMITS["folder_password"].max_requests

    # The successful open above already used one attempt
    for _ in range(limit - 1):
        res = await client.post(f"{API}/folders/{child['id']}/verify", json={"password": "0000"}, headers=auth_headers)
        assert res.status_code == 401

    res = await client.post(f"{API}/folders/{root['id']}/verify", json={"password": "4821"}, headers=auth_headers)

    assert res.status_code == 429


async def test_delete_folder_removes_whole_tree(client, auth_headers, create_folder, open_folder, upload, blob_store):
    root = await create_folder("Taxes")
    root_token = await open_folder(root["id"])
    child = await create_folder("2024", parent_id=root["id"], folder_token=root_token)
    child_token = await open_folder(child["id"])
    grandchild = await create_folder("Q1", parent_id=child["id"], folder_token=child_token)
    grandchild_token = await open_folder(grandchild["id"])
    keep = await create_folder("Medical")

    await upload(root["id"], root_token, filename="a.pdf")
    await upload(child["id"], child_token, filename="b.pdf")
    await upload(grandchild["id"], grandchild_token, filename="c.pdf")
    assert len(blob_store.blobs) == 3

    res = await client.delete(f"{API}/folders/{root['id']}", headers=auth_headers)

    assert res.status_code == 200
    assert res.json()["deleted_folders"] == 3
    assert res.json()["deleted_documents"] == 3
    assert blob_store.blobs == {}

    for folder in (root, child, grandchild):
        res = await client.get(f"{API}/folders/{folder['id']}", headers=auth_headers)
        assert res.status_code == 404

    res = await client.get(f"{API}/folders/{keep['id']}", headers=auth_headers)
    assert res.status_code == 200


async def test_delete_folder_survives_storage_failures(client, auth_headers, create_folder, open_folder, upload, blob_store):
    root = await create_folder("Taxes")
    token = await open_folder(root["id"])
    await upload(root["id"], token)
    blob_store.fail_deletes = True

    res = await client.delete(f"{API}/folders/{root['id']}", headers=auth_headers)

    assert res.status_code == 200
    assert res.json()["deleted_documents"] == 1
    # The blob is orphaned, the rows are gone
    assert len(blob_store.blobs) == 1
    res = await client.get(f"{API}/folders/{root['id']}", headers=auth_headers)
    assert res.status_code == 404


async def test_delete_subfolder_keeps_parent(client, auth_headers, create_folder, open_folder):
    root = await create_folder("Taxes")
    token = await open_folder(root["id"])
    child = await create_folder("2024", parent_id=root["id"], folder_token=token)

    res = await client.delete(f"{API}/folders/{child['id']}", headers=auth_headers)

    assert res.status_code == 200
    assert res.json()["deleted_folders"] == 1
    res = await client.get(f"{API}/folders/{root['id']}", headers=auth_headers)
    assert res.json()["subfolder_count"] == 0
