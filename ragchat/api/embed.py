"""Ingestion endpoints.

Handles file upload (multipart or base64 JSON), web page ingestion and
namespace deletion.
"""

import base64
import binascii
import logging
import re
from typing import Any

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.datastructures import UploadFile

from ragchat.api.deps import (
    EmbedderFactory,
    IndexFactory,
    get_embedder_factory,
    get_http_client,
    get_index_factory,
)
from ragchat.ingestion.engine import DEFAULT_URL_NAMESPACE, IngestionEngine
from ragchat.ingestion.sources import validate_url
from ragchat.models.schemas import (
    EmbedRequest,
    IngestionReport,
    NamespaceDeleteResponse,
    UploadSource,
    UrlEmbedRequest,
)
from ragchat.parsing.pdf_parser import MAX_FILE_SIZE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/embed", tags=["embed"])

# 10MB limit matches pdf_parser constant
MAX_UPLOAD_SIZE = MAX_FILE_SIZE

DEFAULT_FILE_NAME = "upload.pdf"

_DATA_URL_PREFIX = re.compile(r"^data:.*?;base64,")

_TRUE_VALUES = {"1", "true", "yes", "on"}


class InvalidEmbedRequest(Exception):
    """The /embed payload could not be turned into an EmbedRequest."""

    def __init__(self, detail: Any) -> None:
        super().__init__(str(detail))
        self.detail = detail


def _invalid_response(detail: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        content={
            "statusCode": status.HTTP_422_UNPROCESSABLE_CONTENT,
            "status": "error",
            "message": "Invalid request parameters",
            "detail": jsonable_encoder(detail),
        },
    )


def _check_size(name: str, data: bytes) -> bytes:
    """Reject payloads over the upload limit.

    Raises:
        HTTPException: 413 if the file exceeds the size limit.
    """
    if len(data) > MAX_UPLOAD_SIZE:
        size_mb = len(data) / (1024 * 1024)
        raise HTTPException(
            status_code=status.HTTP_413_CONTENT_TOO_LARGE,
            detail=f"File {name} ({size_mb:.1f}MB) exceeds maximum allowed (10MB)",
        )
    return data


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in _TRUE_VALUES


def _decode_base64(payload: Any) -> bytes:
    if not isinstance(payload, str) or not payload.strip():
        raise InvalidEmbedRequest("fileBase64 is required")
    try:
        return base64.b64decode(_DATA_URL_PREFIX.sub("", payload.strip()))
    except (binascii.Error, ValueError) as e:
        raise InvalidEmbedRequest(f"fileBase64 is not valid base64: {e}") from e


async def _uploads_from_form(request: Request) -> tuple[dict[str, Any], list[UploadSource]]:
    form = await request.form()
    uploads = []
    for item in form.getlist("file"):
        if not isinstance(item, UploadFile):
            raise InvalidEmbedRequest("file must be an uploaded file")
        name = item.filename or DEFAULT_FILE_NAME
        data = _check_size(name, await item.read())
        uploads.append(UploadSource(name=name, data=data))
    fields = {"namespace": form.get("namespace"), "replace": _as_bool(form.get("replace"))}
    return fields, uploads


async def _uploads_from_json(request: Request) -> tuple[dict[str, Any], list[UploadSource]]:
    try:
        body = await request.json()
    except ValueError as e:
        raise InvalidEmbedRequest("Body must be multipart/form-data or JSON") from e
    if not isinstance(body, dict):
        raise InvalidEmbedRequest("Body must be a JSON object")

    entries = body.get("files")
    if entries is None and "fileBase64" in body:
        entries = [body]
    if not isinstance(entries, list):
        raise InvalidEmbedRequest("fileBase64 is required")

    uploads = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise InvalidEmbedRequest("files[] entries must be objects")
        name = entry.get("fileName") or DEFAULT_FILE_NAME
        data = _check_size(name, _decode_base64(entry.get("fileBase64")))
        uploads.append(UploadSource(name=name, data=data, namespace=entry.get("namespace")))
    fields = {"namespace": body.get("namespace"), "replace": _as_bool(body.get("replace"))}
    return fields, uploads


async def _parse_embed_request(request: Request) -> EmbedRequest:
    """Build an EmbedRequest from either a multipart or a JSON body.

    Raises:
        InvalidEmbedRequest: If the payload is malformed or incomplete.
    """
    content_type = request.headers.get("content-type", "")
    try:
        if content_type.startswith("multipart/form-data"):
            fields, uploads = await _uploads_from_form(request)
        else:
            fields, uploads = await _uploads_from_json(request)
        return EmbedRequest(uploads=uploads, **fields)
    except ValidationError as e:
        raise InvalidEmbedRequest(
            e.errors(include_url=False, include_context=False, include_input=False)
        ) from e


@router.post("", response_model=IngestionReport)
async def embed_files(
    request: Request,
    index_factory: IndexFactory = Depends(get_index_factory),
    embedder_factory: EmbedderFactory = Depends(get_embedder_factory),
) -> IngestionReport | JSONResponse:
    """Ingest uploaded documents into a namespace.

    Accepts multipart/form-data (``file`` parts plus ``namespace`` and
    optional ``replace``) or JSON (``fileBase64``, ``fileName``,
    ``namespace``, optional ``replace``; or a ``files`` list).

    Returns:
        IngestionReport with one result per file. A file that fails is
        reported with ``added: 0`` and its error; the request still succeeds.

    Raises:
        422: Missing namespace or file, or undecodable payload.
        413: A file exceeds the 10MB limit.
    """
    try:
        embed_request = await _parse_embed_request(request)
    except InvalidEmbedRequest as e:
        logger.warning(f"Rejected /embed request: {e.detail}")
        return _invalid_response(e.detail)

    async with index_factory() as index, embedder_factory() as embedder:
        engine = IngestionEngine(embedder, index)
        report = await engine.ingest_uploads(
            embed_request.uploads,
            embed_request.namespace,
            replace=embed_request.replace,
        )

    logger.info(
        f"Embedded {len(embed_request.uploads)} file(s) into {embed_request.namespace}: "
        f"{report.total_added} chunks"
    )
    return report


@router.post("/url", response_model=IngestionReport)
async def embed_urls(
    body: UrlEmbedRequest,
    index_factory: IndexFactory = Depends(get_index_factory),
    embedder_factory: EmbedderFactory = Depends(get_embedder_factory),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> IngestionReport | JSONResponse:
    """Fetch web pages and ingest their text.

    Raises:
        400: No valid http(s) URL was supplied.
    """
    urls = []
    for raw in body.requested_urls():
        url = validate_url(raw)
        if url is None:
            logger.warning(f"Skipping invalid URL: {raw!r}")
            continue
        urls.append(url)

    if not urls:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid url", "detail": "Provide http(s) url or urls[]"},
        )

    namespace = (body.namespace or "").strip() or DEFAULT_URL_NAMESPACE
    async with index_factory() as index, embedder_factory() as embedder:
        engine = IngestionEngine(embedder, index)
        return await engine.ingest_urls(urls, client, namespace=namespace, replace=body.replace)


@router.delete("/{namespace}", response_model=NamespaceDeleteResponse)
async def delete_namespace(
    namespace: str,
    index_factory: IndexFactory = Depends(get_index_factory),
) -> NamespaceDeleteResponse:
    """Drop every chunk stored under a namespace."""
    async with index_factory() as index:
        deleted = await index.delete_namespace(namespace)
    logger.info(f"Deleted namespace {namespace}: {deleted} chunks")
    return NamespaceDeleteResponse(namespace=namespace, deleted=deleted)
