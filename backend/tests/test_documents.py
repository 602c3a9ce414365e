"""
Tests for document upload, download, visibility and deletion.
"""
from pathlib import Path

import pytest
from httpx import AsyncClient

from cafirm.core.exceptions import InvalidFileTypeError, StoredFileMissingError
from cafirm.core.storage import StorageService
from tests.conftest import Seed, auth_headers

DOCUMENTS = "/api/v1/documents"
PDF = b"%PDF-1.4\n1 0 obj <<>> endobj\ntrailer <<>>\n%%EOF"


async def upload(api: AsyncClient, account, client_id=None, name="form16.pdf", mime="application/pdf", **form):
    data = {"document_type": "form_16", **form}
    if client_id is not None:
        data["client_id"] = str(client_id)
    return await api.post(
        DOCUMENTS,
        files={"file": (name, PDF, mime)},
        data=data,
        headers=auth_headers(account),
    )


# === STORAGE ===


@pytest.mark.asyncio
async def test_storage_save_and_resolve(upload_dir: Path, seed: Seed):
    storage = StorageService()
    stored = await storage.save(PDF, "statement.pdf", "application/pdf", client_id=seed.client.id)

    assert stored.storage_path.startswith(f"{seed.client.id}/")
    assert stored.storage_path.endswith(".pdf")
    assert stored.size == len(PDF)
    assert storage.resolve(stored.storage_path) == upload_dir / stored.storage_path

    # Rows written with absolute paths still resolve
    absolute = str(upload_dir / stored.storage_path)
    assert storage.resolve(absolute).read_bytes() == PDF

    assert await storage.delete(stored.storage_path) is True
    with pytest.raises(StoredFileMissingError):
        storage.resolve(stored.storage_path)


def test_storage_resolves_paths_relative_to_working_directory(tmp_path: Path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    legacy = Path.cwd() / "legacy-uploads" / "scan.pdf"
    legacy.parent.mkdir()
    legacy.write_bytes(PDF)

    storage = StorageService()
    assert storage.candidate_paths("/legacy-uploads/scan.pdf")[1] == legacy
    # The absolute reading of the path does not exist, the working directory one does
    assert storage.resolve("/legacy-uploads/scan.pdf") == legacy


@pytest.mark.asyncio
async def test_storage_team_member_prefix(seed: Seed):
    stored = await StorageService().save(PDF, "cert.pdf", "application/pdf", team_member_id=seed.team_member.id)
    assert stored.storage_path.startswith(f"team-member/{seed.team_member.id}/")


@pytest.mark.asyncio
async def test_storage_rejects_unknown_mime_type():
    with pytest.raises(InvalidFileTypeError):
        await StorageService().save(b"MZ", "tool.exe", "application/x-msdownload", client_id=None)


def test_sanitize_filename():
    assert StorageService.sanitize_filename("../../etc/passwd") == "passwd"
    assert StorageService.sanitize_filename("my report (final).pdf") == "my report _final_.pdf"
    assert StorageService.sanitize_filename(None) == "document"


# === API ===


@pytest.mark.asyncio
async def test_client_uploads_own_document(api: AsyncClient, seed: Seed, upload_dir: Path):
    response = await upload(api, seed.client)
    assert response.status_code == 201, response.text
    document = response.json()["data"]
    assert document["client_id"] == str(seed.client.id)
    assert document["uploaded_by_role"] == "client"
    assert document["status"] == "pending"
    assert "storage_path" not in document

    stored = list((upload_dir / str(seed.client.id)).iterdir())
    assert len(stored) == 1


@pytest.mark.asyncio
async def test_client_cannot_upload_for_someone_else(api: AsyncClient, seed: Seed):
    response = await upload(api, seed.client, client_id=seed.other_client.id)
    assert response.status_code == 201
    # The client id in the form is ignored for clients
    assert response.json()["data"]["client_id"] == str(seed.client.id)


@pytest.mark.asyncio
async def test_staff_upload_requires_client(api: AsyncClient, seed: Seed):
    response = await upload(api, seed.admin)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_team_member_upload_limited_to_assigned_clients(api: AsyncClient, seed: Seed):
    allowed = await upload(api, seed.team_member, client_id=seed.client.id)
    assert allowed.status_code == 201
    assert allowed.json()["data"]["team_member_id"] == str(seed.team_member.id)

    denied = await upload(api, seed.team_member, client_id=seed.other_client.id)
    assert denied.status_code == 404


@pytest.mark.asyncio
async def test_invalid_file_type_rejected(api: AsyncClient, seed: Seed, upload_dir: Path):
    response = await upload(api, seed.client, name="virus.exe", mime="application/x-msdownload")
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_FILE_TYPE"
    assert not upload_dir.exists() or not any(upload_dir.rglob("*.exe"))


@pytest.mark.asyncio
async def test_download_streams_file_as_attachment(api: AsyncClient, seed: Seed):
    document = (await upload(api, seed.client, name="form16.pdf")).json()["data"]

    response = await api.get(
        f"{DOCUMENTS}/{document['id']}/download",
        headers=auth_headers(seed.team_member),
    )
    assert response.status_code == 200
    assert response.content == PDF
    assert response.headers["content-type"].startswith("application/pdf")
    assert response.headers["content-disposition"].startswith("attachment")
    assert "form16.pdf" in response.headers["content-disposition"]


@pytest.mark.asyncio
async def test_download_out_of_scope_is_not_found(api: AsyncClient, seed: Seed):
    document = (await upload(api, seed.client)).json()["data"]
    for account in (seed.other_client, seed.other_team_member):
        response = await api.get(
            f"{DOCUMENTS}/{document['id']}/download",
            headers=auth_headers(account),
        )
        assert response.status_code == 404


@pytest.mark.asyncio
async def test_download_missing_file(api: AsyncClient, seed: Seed, upload_dir: Path):
    document = (await upload(api, seed.client)).json()["data"]
    for path in upload_dir.rglob("*.pdf"):
        path.unlink()

    response = await api.get(f"{DOCUMENTS}/{document['id']}/download", headers=auth_headers(seed.admin))
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "FILE_MISSING"


@pytest.mark.asyncio
async def test_review_document(api: AsyncClient, seed: Seed):
    document = (await upload(api, seed.client)).json()["data"]

    response = await api.patch(
        f"{DOCUMENTS}/{document['id']}/status",
        json={"status": "approved"},
        headers=auth_headers(seed.client),
    )
    assert response.status_code == 403

    response = await api.patch(
        f"{DOCUMENTS}/{document['id']}/status",
        json={"status": "approved"},
        headers=auth_headers(seed.project_manager),
    )
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "approved"
    assert response.json()["data"]["approved_at"] is not None


@pytest.mark.asyncio
async def test_hide_only_affects_callers_role(api: AsyncClient, seed: Seed):
    document = (await upload(api, seed.client)).json()["data"]

    response = await api.post(f"{DOCUMENTS}/{document['id']}/hide", headers=auth_headers(seed.client))
    assert response.status_code == 200

    client_list = await api.get(DOCUMENTS, headers=auth_headers(seed.client))
    assert client_list.json()["total"] == 0

    admin_list = await api.get(DOCUMENTS, headers=auth_headers(seed.admin))
    assert admin_list.json()["total"] == 1


@pytest.mark.asyncio
async def test_soft_delete(api: AsyncClient, seed: Seed, upload_dir: Path):
    document = (await upload(api, seed.client)).json()["data"]

    # Only the uploader or a manager may delete
    response = await api.delete(f"{DOCUMENTS}/{document['id']}", headers=auth_headers(seed.team_member))
    assert response.status_code == 403

    response = await api.delete(f"{DOCUMENTS}/{document['id']}", headers=auth_headers(seed.client))
    assert response.status_code == 200

    response = await api.get(f"{DOCUMENTS}/{document['id']}", headers=auth_headers(seed.admin))
    assert response.status_code == 404
    # File is kept
    assert any(upload_dir.rglob("*.pdf"))


@pytest.mark.asyncio
async def test_hard_delete_removes_file(api: AsyncClient, seed: Seed, upload_dir: Path):
    document = (await upload(api, seed.client)).json()["data"]

    response = await api.delete(
        f"{DOCUMENTS}/{document['id']}/permanent",
        headers=auth_headers(seed.project_manager),
    )
    assert response.status_code == 403

    response = await api.delete(
        f"{DOCUMENTS}/{document['id']}/permanent",
        headers=auth_headers(seed.admin),
    )
    assert response.status_code == 200
    assert not any(upload_dir.rglob("*.pdf"))


@pytest.mark.asyncio
async def test_hierarchy_for_team_member(api: AsyncClient, seed: Seed):
    own = await api.post(
        f"{DOCUMENTS}/self",
        files={"file": ("aadhaar.pdf", PDF, "application/pdf")},
        data={"document_type": "aadhaar_card"},
        headers=auth_headers(seed.team_member),
    )
    assert own.status_code == 201
    assert own.json()["data"]["client_id"] is None

    await upload(api, seed.client)
    await upload(api, seed.team_member, client_id=seed.client.id, document_type="itr")

    response = await api.get(f"{DOCUMENTS}/hierarchy", headers=auth_headers(seed.team_member))
    assert response.status_code == 200
    hierarchy = response.json()["data"]
    assert hierarchy["own"]["total"] == 1
    assert list(hierarchy["own"]["by_type"]) == ["aadhaar_card"]

    [group] = hierarchy["clients"]
    assert group["owner_id"] == str(seed.client.id)
    assert group["total"] == 2
    assert set(group["by_type"]) == {"form_16", "itr"}


@pytest.mark.asyncio
async def test_hierarchy_requires_team_member_for_managers(api: AsyncClient, seed: Seed):
    response = await api.get(f"{DOCUMENTS}/hierarchy", headers=auth_headers(seed.admin))
    assert response.status_code == 422

    response = await api.get(
        f"{DOCUMENTS}/hierarchy",
        params={"team_member_id": str(seed.team_member.id)},
        headers=auth_headers(seed.admin),
    )
    assert response.status_code == 200

    response = await api.get(f"{DOCUMENTS}/hierarchy", headers=auth_headers(seed.client))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_only_team_members_upload_personal_documents(api: AsyncClient, seed: Seed):
    response = await api.post(
        f"{DOCUMENTS}/self",
        files={"file": ("x.pdf", PDF, "application/pdf")},
        headers=auth_headers(seed.client),
    )
    assert response.status_code == 403
