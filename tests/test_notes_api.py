"""
NoteKeeper Backend — /notes API Tests
========================================

What:  End-to-end HTTP behavior: status codes, error bodies, owner scoping.
How:   HTTPX AsyncClient over ASGITransport; in-memory SQLite and the
       FakeBlobStore (see conftest.py).
"""

from datetime import datetime, timedelta, timezone
from uuid import UUID

import pytest
from sqlalchemy import update

from notekeeper.models.note import Note


async def _create_note(client, headers, **body):
    response = await client.post("/notes", json={"title": "Groceries", **body}, headers=headers)
    assert response.status_code == 201
    return response.json()


class TestAuthentication:

    @pytest.mark.asyncio
    async def test_missing_token_is_401(self, test_client):
        response = await test_client.get("/notes")

        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_invalid_token_is_401(self, test_client):
        response = await test_client.get("/notes", headers={"Authorization": "Bearer garbage"})

        assert response.status_code == 401


class TestNoteCrud:

    @pytest.mark.asyncio
    async def test_create_and_get(self, test_client, alice_headers):
        created = await _create_note(test_client, alice_headers, content="milk", color="yellow")

        assert created["owner_id"] == "alice"
        assert created["images"] == []

        response = await test_client.get(f"/notes/{created['id']}", headers=alice_headers)
        assert response.status_code == 200
        assert response.json()["content"] == "milk"

    @pytest.mark.asyncio
    async def test_create_ignores_client_supplied_owner_and_images(self, test_client, alice_headers):
        created = await _create_note(
            test_client,
            alice_headers,
            owner_id="bob",
            images=[{"public_id": "x", "url": "y"}],
        )

        assert created["owner_id"] == "alice"
        assert created["images"] == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{}, {"title": ""}, {"title": "   "}])
    async def test_create_requires_title(self, test_client, alice_headers, body):
        response = await test_client.post("/notes", json=body, headers=alice_headers)

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_list_is_scoped_and_newest_first(
        self, test_client, alice_headers, bob_headers, session_factory
    ):
        first = await _create_note(test_client, alice_headers, title="first")
        second = await _create_note(test_client, alice_headers, title="second")
        await _create_note(test_client, bob_headers, title="bob's")
        base = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        async with session_factory() as session:
            for note, age in ((first, 2), (second, 1)):
                await session.execute(
                    update(Note)
                    .where(Note.id == UUID(note["id"]))
                    .values(created_at=base - timedelta(minutes=age))
                )
            await session.commit()

        response = await test_client.get("/notes", headers=alice_headers)

        assert response.status_code == 200
        assert [n["title"] for n in response.json()] == ["second", "first"]

    @pytest.mark.asyncio
    async def test_update_partial(self, test_client, alice_headers):
        created = await _create_note(test_client, alice_headers, content="milk")

        response = await test_client.put(
            f"/notes/{created['id']}", json={"color": "green"}, headers=alice_headers
        )

        assert response.status_code == 200
        body = response.json()
        assert body["title"] == "Groceries"
        assert body["content"] == "milk"
        assert body["color"] == "green"

    @pytest.mark.asyncio
    async def test_update_with_null_title_is_rejected(self, test_client, alice_headers):
        created = await _create_note(test_client, alice_headers)

        response = await test_client.put(
            f"/notes/{created['id']}", json={"title": None}, headers=alice_headers
        )

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_malformed_id_is_404(self, test_client, alice_headers):
        response = await test_client.get("/notes/not-a-uuid", headers=alice_headers)

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"


class TestOwnerIsolation:

    @pytest.mark.asyncio
    async def test_foreign_note_is_indistinguishable_from_missing(
        self, test_client, alice_headers, bob_headers
    ):
        note = await _create_note(test_client, alice_headers)
        note_url = f"/notes/{note['id']}"

        for method, kwargs in [
            ("GET", {}),
            ("PUT", {"json": {"title": "mine now"}}),
            ("DELETE", {}),
        ]:
            response = await test_client.request(method, note_url, headers=bob_headers, **kwargs)
            assert response.status_code == 404
            assert response.json()["error"] == "not_found"

        response = await test_client.get(note_url, headers=alice_headers)
        assert response.status_code == 200
        assert response.json()["title"] == "Groceries"

    @pytest.mark.asyncio
    async def test_foreign_note_image_endpoints_are_404(
        self, test_client, alice_headers, bob_headers, blob_store, sample_image_bytes
    ):
        note = await _create_note(test_client, alice_headers)

        response = await test_client.post(
            f"/notes/{note['id']}/images",
            files={"image": ("a.png", sample_image_bytes, "image/png")},
            headers=bob_headers,
        )
        assert response.status_code == 404

        response = await test_client.delete(
            f"/notes/{note['id']}/images/notes_app/img1", headers=bob_headers
        )
        assert response.status_code == 404
        assert blob_store.uploads == []
        assert blob_store.deletes == []

    @pytest.mark.asyncio
    async def test_removing_foreign_identifier_from_own_note_keeps_their_blob(
        self, test_client, alice_headers, bob_headers, blob_store, sample_image_bytes
    ):
        alice_note = await _create_note(test_client, alice_headers)
        response = await test_client.post(
            f"/notes/{alice_note['id']}/images",
            files={"image": ("a.png", sample_image_bytes, "image/png")},
            headers=alice_headers,
        )
        alice_public_id = response.json()["images"][0]["public_id"]
        bob_note = await _create_note(test_client, bob_headers, title="bob's")

        response = await test_client.delete(
            f"/notes/{bob_note['id']}/images/{alice_public_id}", headers=bob_headers
        )

        assert response.status_code == 200
        assert response.json()["images"] == []
        assert blob_store.deletes == []
        assert alice_public_id in blob_store.blobs

        response = await test_client.get(f"/notes/{alice_note['id']}", headers=alice_headers)
        assert [i["public_id"] for i in response.json()["images"]] == [alice_public_id]


class TestImageLifecycle:

    @pytest.mark.asyncio
    async def test_full_lifecycle(self, test_client, alice_headers, blob_store, sample_image_bytes):
        note = await _create_note(test_client, alice_headers)
        note_url = f"/notes/{note['id']}"

        response = await test_client.post(
            f"{note_url}/images",
            files={"image": ("a.png", sample_image_bytes, "image/png")},
            headers=alice_headers,
        )
        assert response.status_code == 200
        images = response.json()["images"]
        assert images == [
            {"public_id": "notes_app/img1", "url": "https://blobs.test/notes_app/img1.png"}
        ]

        response = await test_client.post(
            f"{note_url}/images",
            files={"image": ("b.jpg", sample_image_bytes, "image/jpeg")},
            headers=alice_headers,
        )
        assert [i["public_id"] for i in response.json()["images"]] == [
            "notes_app/img1",
            "notes_app/img2",
        ]

        # Identifier contains "/"
        response = await test_client.delete(f"{note_url}/images/notes_app/img1", headers=alice_headers)
        assert response.status_code == 200
        assert [i["public_id"] for i in response.json()["images"]] == ["notes_app/img2"]

        response = await test_client.delete(note_url, headers=alice_headers)
        assert response.status_code == 200
        assert response.json() == {"message": "Note deleted"}
        assert blob_store.deletes == ["notes_app/img1", "notes_app/img2"]
        assert blob_store.blobs == {}

        response = await test_client.get(note_url, headers=alice_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_add_image_without_file_is_400(self, test_client, alice_headers, blob_store):
        note = await _create_note(test_client, alice_headers)

        response = await test_client.post(
            f"/notes/{note['id']}/images",
            files={"attachment": ("a.png", b"png", "image/png")},
            headers=alice_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "bad_request"
        assert blob_store.uploads == []

    @pytest.mark.asyncio
    async def test_non_image_upload_is_400(self, test_client, alice_headers):
        note = await _create_note(test_client, alice_headers)

        response = await test_client.post(
            f"/notes/{note['id']}/images",
            files={"image": ("notes.txt", b"hello", "text/plain")},
            headers=alice_headers,
        )

        assert response.status_code == 400
        assert response.json()["details"]["field"] == "image"

    @pytest.mark.asyncio
    async def test_upload_failure_is_400_and_note_unchanged(
        self, test_client, alice_headers, blob_store, sample_image_bytes
    ):
        note = await _create_note(test_client, alice_headers)
        blob_store.fail_uploads = True

        response = await test_client.post(
            f"/notes/{note['id']}/images",
            files={"image": ("a.png", sample_image_bytes, "image/png")},
            headers=alice_headers,
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "dependency_unavailable"
        assert body["details"] == {"dependency": "blob_store"}

        response = await test_client.get(f"/notes/{note['id']}", headers=alice_headers)
        assert response.json()["images"] == []

    @pytest.mark.asyncio
    async def test_cascade_delete_succeeds_when_blob_delete_fails(
        self, test_client, alice_headers, blob_store, sample_image_bytes
    ):
        note = await _create_note(test_client, alice_headers)
        for _ in range(2):
            await test_client.post(
                f"/notes/{note['id']}/images",
                files={"image": ("a.png", sample_image_bytes, "image/png")},
                headers=alice_headers,
            )
        blob_store.failing_deletes.add("notes_app/img1")

        response = await test_client.delete(f"/notes/{note['id']}", headers=alice_headers)

        assert response.status_code == 200
        assert blob_store.deletes == ["notes_app/img1", "notes_app/img2"]


class TestAmbientEndpoints:

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, test_client, alice_headers):
        response = await test_client.get(
            "/notes", headers={**alice_headers, "X-Request-ID": "req-42"}
        )

        assert response.headers["X-Request-ID"] == "req-42"

    @pytest.mark.asyncio
    async def test_error_body_carries_request_id(self, test_client):
        response = await test_client.get("/notes", headers={"X-Request-ID": "req-43"})

        assert response.json()["request_id"] == "req-43"

    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["blob_store"] == "available"
        assert body["status"] in {"healthy", "degraded", "unhealthy"}

    @pytest.mark.asyncio
    async def test_files_route_is_404_without_local_store(self, test_client):
        response = await test_client.get("/files/notes_app/img1.png")

        assert response.status_code == 404
