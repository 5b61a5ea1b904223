"""
Tests for DockerTransfer, with a mocked docker client.
"""

from unittest.mock import MagicMock, call

import pytest
from docker.errors import APIError, ImageNotFound

from src.engine.errors import TransferError
from src.registry.transfer import DockerTransfer, split_identifier


@pytest.fixture
def client():
    client = MagicMock()
    client.images.pull.return_value.tag.return_value = True
    client.images.push.return_value = iter([
        {"status": "Pushing"},
        {"status": "3.1: digest: sha256:abc size: 527"},
    ])
    return client


def _transfer(client, **kwargs):
    return DockerTransfer("google_containers", "gcrxio", "secret", client=client, **kwargs)


class TestSplitIdentifier:
    def test_name_and_tag(self):
        assert split_identifier("pause:3.1") == ("pause", "3.1")

    def test_missing_tag_is_latest(self):
        assert split_identifier("pause") == ("pause", "latest")

    def test_last_colon_wins(self):
        assert split_identifier("a:b:c") == ("a:b", "c")


class TestDockerTransfer:
    """Pull, tag, push, remove."""

    def test_happy_path(self, client):
        _transfer(client).transfer("pause:3.1")

        client.images.pull.assert_called_once_with("gcr.io/google_containers/pause", tag="3.1")
        client.images.pull.return_value.tag.assert_called_once_with(
            "gcrxio/google_containers_pause", tag="3.1"
        )
        client.images.push.assert_called_once_with(
            "gcrxio/google_containers_pause",
            tag="3.1",
            stream=True,
            decode=True,
            auth_config={"username": "gcrxio", "password": "secret"},
        )

    def test_local_images_removed(self, client):
        _transfer(client).transfer("pause:3.1")

        client.images.remove.assert_has_calls([
            call("gcr.io/google_containers/pause:3.1", force=True),
            call("gcrxio/google_containers_pause:3.1", force=True),
        ])

    def test_no_cleanup(self, client):
        _transfer(client, cleanup=False).transfer("pause:3.1")

        client.images.remove.assert_not_called()

    def test_pull_failure(self, client):
        client.images.pull.side_effect = ImageNotFound("manifest unknown")

        with pytest.raises(TransferError) as exc_info:
            _transfer(client).transfer("pause:9.9")

        assert exc_info.value.image == "pause:9.9"
        client.images.push.assert_not_called()

    def test_tag_failure(self, client):
        client.images.pull.return_value.tag.return_value = False

        with pytest.raises(TransferError, match="tag"):
            _transfer(client).transfer("pause:3.1")

    def test_error_in_push_stream(self, client):
        client.images.push.return_value = iter([
            {"status": "Pushing"},
            {"error": "denied", "errorDetail": {"message": "requested access is denied"}},
        ])

        with pytest.raises(TransferError, match="access is denied"):
            _transfer(client).transfer("pause:3.1")

    def test_push_api_error(self, client):
        client.images.push.side_effect = APIError("daemon gone")

        with pytest.raises(TransferError):
            _transfer(client).transfer("pause:3.1")

    def test_cleanup_failure_is_ignored(self, client):
        client.images.remove.side_effect = APIError("conflict")

        _transfer(client).transfer("pause:3.1")
