"""Integration tests for the ingestion endpoints.

Runs the full request path (payload parsing, extraction, chunking,
embedding, upsert) against in-memory doubles for the vector store and the
embedding service.
"""

import base64

import pytest_check as check
from httpx import AsyncClient

from ragchat.models.schemas import IngestionReport
from ragchat.retrieval.vector_index import InMemoryVectorIndex
from tests.doubles import FakeEmbedder

NOTES = "The fox lives in the forest. It hunts at dawn and sleeps through the afternoon."


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode()


async def test_health_check(async_client: AsyncClient) -> None:
    response = await async_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "ragchat"}


class TestEmbedFiles:
    """Integration tests for POST /embed."""

    async def test_json_base64_upload(
        self, async_client: AsyncClient, index: InMemoryVectorIndex
    ) -> None:
        """A base64 text file is chunked and stored under its namespace."""
        response = await async_client.post(
            "/embed",
            json={"fileBase64": _b64(NOTES.encode()), "fileName": "notes.txt", "namespace": "docs"},
        )

        assert response.status_code == 200
        body = response.json()
        check.equal(body["totalAdded"], 1)
        check.equal(body["chunkSize"], 500)
        check.equal(body["chunkOverlap"], 80)
        check.equal(body["results"][0]["source"], "notes.txt")
        check.equal(body["results"][0]["namespace"], "docs")
        check.equal(len(await index.fetch_all("docs")), 1)

    async def test_data_url_prefix_is_stripped(self, async_client: AsyncClient) -> None:
        response = await async_client.post(
            "/embed",
            json={
                "fileBase64": "data:text/plain;base64," + _b64(NOTES.encode()),
                "fileName": "notes.txt",
                "namespace": "docs",
            },
        )

        assert response.status_code == 200
        assert response.json()["totalAdded"] == 1

    async def test_multipart_pdf_upload(
        self, async_client: AsyncClient, index: InMemoryVectorIndex, make_pdf
    ) -> None:
        pdf = make_pdf(["Alpha is the first letter.", "Beta is the second letter."])

        response = await async_client.post(
            "/embed",
            files={"file": ("letters.pdf", pdf, "application/pdf")},
            data={"namespace": "letters"},
        )

        assert response.status_code == 200
        report = IngestionReport.model_validate(response.json())
        check.equal(report.results[0].pages, 2)
        check.equal(report.total_added, 2)
        records = await index.fetch_all("letters")
        check.equal(sorted(r.metadata.page for r in records), [1, 2])

    async def test_multiple_multipart_files(self, async_client: AsyncClient) -> None:
        response = await async_client.post(
            "/embed",
            files=[
                ("file", ("a.txt", b"first file text", "text/plain")),
                ("file", ("b.txt", b"second file text", "text/plain")),
            ],
            data={"namespace": "docs"},
        )

        assert response.status_code == 200
        assert [r["source"] for r in response.json()["results"]] == ["a.txt", "b.txt"]

    async def test_missing_namespace_is_rejected(self, async_client: AsyncClient) -> None:
        response = await async_client.post(
            "/embed", json={"fileBase64": _b64(b"text"), "fileName": "a.txt"}
        )

        assert response.status_code == 422
        body = response.json()
        check.equal(body["statusCode"], 422)
        check.equal(body["status"], "error")
        check.equal(body["message"], "Invalid request parameters")
        check.equal(body["detail"][0]["loc"], ["namespace"])

    async def test_missing_file_is_rejected(self, async_client: AsyncClient) -> None:
        response = await async_client.post("/embed", json={"namespace": "docs"})

        assert response.status_code == 422
        assert response.json()["detail"] == "fileBase64 is required"

    async def test_multipart_without_file_is_rejected(self, async_client: AsyncClient) -> None:
        response = await async_client.post(
            "/embed", files={"other": ("x.txt", b"x", "text/plain")}, data={"namespace": "docs"}
        )

        assert response.status_code == 422

    async def test_invalid_base64_is_rejected(self, async_client: AsyncClient) -> None:
        response = await async_client.post(
            "/embed", json={"fileBase64": "abc", "namespace": "docs"}
        )

        assert response.status_code == 422
        assert response.json()["detail"].startswith("fileBase64 is not valid base64")

    async def test_non_json_body_is_rejected(self, async_client: AsyncClient) -> None:
        response = await async_client.post(
            "/embed", content=b"not json", headers={"content-type": "text/plain"}
        )

        assert response.status_code == 422

    async def test_partial_failure_keeps_request_successful(
        self, async_client: AsyncClient, index: InMemoryVectorIndex
    ) -> None:
        response = await async_client.post(
            "/embed",
            json={
                "namespace": "docs",
                "files": [
                    {"fileBase64": _b64(NOTES.encode()), "fileName": "good.txt"},
                    {"fileBase64": _b64(b"%PDF-1.4 broken"), "fileName": "broken.pdf"},
                ],
            },
        )

        assert response.status_code == 200
        good, broken = response.json()["results"]
        check.equal(good["added"], 1)
        check.equal(broken["source"], "broken.pdf")
        check.equal(broken["added"], 0)
        check.is_true(broken["error"])
        check.equal(response.json()["totalAdded"], 1)
        check.equal(await index.count(), 1)

    async def test_embedding_failure_is_reported_per_file(
        self, async_client: AsyncClient, embedder: FakeEmbedder
    ) -> None:
        embedder.fail = True

        response = await async_client.post(
            "/embed",
            json={"fileBase64": _b64(NOTES.encode()), "fileName": "notes.txt", "namespace": "docs"},
        )

        assert response.status_code == 200
        result = response.json()["results"][0]
        check.equal(result["added"], 0)
        check.is_in("HTTP 503", result["error"])

    async def test_replace_drops_previous_chunks(
        self, async_client: AsyncClient, index: InMemoryVectorIndex
    ) -> None:
        payload = {"fileBase64": _b64(NOTES.encode()), "fileName": "notes.txt", "namespace": "docs"}

        await async_client.post("/embed", json=payload)
        await async_client.post("/embed", json=payload)
        check.equal(await index.count(), 2)

        response = await async_client.post("/embed", json={**payload, "replace": True})

        check.equal(response.status_code, 200)
        check.equal(await index.count(), 1)


class TestEmbedUrls:
    """Integration tests for POST /embed/url."""

    async def test_invalid_urls_are_rejected(self, async_client: AsyncClient) -> None:
        for body in ({}, {"url": "ftp://example.com/file"}, {"urls": ["javascript:alert(1)", ""]}):
            response = await async_client.post("/embed/url", json=body)

            check.equal(response.status_code, 400)
            check.equal(
                response.json(),
                {"error": "Invalid url", "detail": "Provide http(s) url or urls[]"},
            )

    async def test_pages_are_ingested(
        self, async_client: AsyncClient, index: InMemoryVectorIndex, page_client
    ) -> None:
        page_client({
            "https://example.com/fox": (
                200,
                "<html><head><title>Foxes</title></head><body><p>"
                + NOTES
                + "</p></body></html>",
            ),
        })

        response = await async_client.post(
            "/embed/url",
            json={
                "urls": ["https://example.com/fox", "not a url"],
                "url": "https://example.com/gone",
            },
        )

        assert response.status_code == 200
        fox, gone = response.json()["results"]
        check.equal(fox["url"], "https://example.com/fox")
        check.equal(fox["namespace"], "website")
        check.equal(fox["title"], "Foxes")
        check.equal(fox["added"], 1)
        check.equal(gone["error"], "Fetch failed 404")
        records = await index.fetch_all("website")
        check.equal([r.metadata.url for r in records], ["https://example.com/fox"])

    async def test_custom_namespace(
        self, async_client: AsyncClient, index: InMemoryVectorIndex, page_client
    ) -> None:
        page_client({"https://example.com/a": (200, f"<p>{NOTES}</p>")})

        response = await async_client.post(
            "/embed/url", json={"url": "https://example.com/a", "namespace": "blog"}
        )

        assert response.status_code == 200
        assert len(await index.fetch_all("blog")) == 1


class TestDeleteNamespace:
    """Integration tests for DELETE /embed/{namespace}."""

    async def test_delete_namespace(
        self, async_client: AsyncClient, index: InMemoryVectorIndex
    ) -> None:
        for namespace in ("docs", "docs", "keep"):
            await async_client.post(
                "/embed",
                json={
                    "fileBase64": _b64(NOTES.encode()),
                    "fileName": "n.txt",
                    "namespace": namespace,
                },
            )

        response = await async_client.delete("/embed/docs")

        assert response.status_code == 200
        check.equal(response.json(), {"namespace": "docs", "deleted": 2})
        check.equal(await index.count(), 1)

    async def test_delete_unknown_namespace(self, async_client: AsyncClient) -> None:
        response = await async_client.delete("/embed/missing")

        assert response.json() == {"namespace": "missing", "deleted": 0}
