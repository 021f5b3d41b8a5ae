from __future__ import annotations

from google.api_core import exceptions as gexc
from google.cloud import storage

from ocr_service.errors import DocumentNotFoundError, RetrievalError


def gs_uri(bucket: str, name: str) -> str:
    return f"gs://{bucket}/{name}"


def download_bytes(client: storage.Client, bucket: str, name: str) -> bytes:
    """Fetch an object's bytes; no retry at this layer."""
    b = client.bucket(bucket)
    blob = b.blob(name)
    try:
        return blob.download_as_bytes()
    except gexc.NotFound as e:
        raise DocumentNotFoundError(f"document not found: {gs_uri(bucket, name)}") from e
    except Exception as e:
        raise RetrievalError(f"retrieval failed for {gs_uri(bucket, name)}: {type(e).__name__}: {e}") from e
