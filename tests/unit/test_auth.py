"""Unit tests for the shared-secret check and the Cloud Run safety guard."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock, patch

import pytest
from fastapi import HTTPException

from ocr_service.auth import is_public_path, require_secret_on_cloud_run, verify_worker_secret


def _make_request(secret: str | None = None, path: str = "/v1/extract") -> MagicMock:
    request = MagicMock()
    request.url.path = path
    request.headers = {}
    if secret is not None:
        request.headers["x-worker-secret"] = secret
    return request


class TestPublicPaths:
    def test_liveness_is_public(self):
        assert is_public_path("/liveness")

    def test_readiness_is_public(self):
        assert is_public_path("/readiness")

    def test_docs_is_public(self):
        assert is_public_path("/docs")

    def test_extract_is_not_public(self):
        assert not is_public_path("/v1/extract")


class TestVerifyWorkerSecret:
    def test_matching_secret_passes(self, make_config):
        verify_worker_secret(_make_request("abc"), make_config(worker_secret="abc"))

    def test_missing_secret_raises_401(self, make_config):
        with pytest.raises(HTTPException) as exc_info:
            verify_worker_secret(_make_request(), make_config(worker_secret="abc"))
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Missing worker secret"

    def test_wrong_secret_raises_401(self, make_config):
        with pytest.raises(HTTPException) as exc_info:
            verify_worker_secret(_make_request("abd"), make_config(worker_secret="abc"))
        assert exc_info.value.detail == "Invalid worker secret"

    def test_unset_secret_disables_check(self, make_config):
        verify_worker_secret(_make_request(), make_config(worker_secret=None))


class TestCloudRunGuard:
    @patch("ocr_service.auth.IS_CLOUD_RUN", True)
    def test_cloud_run_without_secret_refuses_to_start(self, make_config):
        with pytest.raises(RuntimeError, match="OCR_WORKER_SECRET"):
            require_secret_on_cloud_run(make_config(worker_secret=None))

    @patch("ocr_service.auth.IS_CLOUD_RUN", True)
    def test_cloud_run_with_secret_ok(self, make_config):
        require_secret_on_cloud_run(make_config(worker_secret="s"))

    @patch("ocr_service.auth.IS_CLOUD_RUN", False)
    def test_local_dev_mode_warns(self, make_config, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.WARNING, logger="ocr_service.auth"):
            require_secret_on_cloud_run(make_config(worker_secret=None))
        assert "dev mode" in caplog.text
