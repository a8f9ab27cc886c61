"""Tests for EmbeddingService class."""

import os
from unittest.mock import Mock, call, patch

import pytest
from conftest import create_mock_openai_response, make_connection_error, make_timeout_error

from ragdesk import EmbeddingService, EmbeddingUnavailable
from ragdesk.config import config


def test_init_with_api_key(embedding_service_factory) -> None:
    service = embedding_service_factory(model="text-embedding-3-large", timeout=5.0)
    assert service.model == "text-embedding-3-large"
    assert service.client.api_key == "test-key"
    assert service.timeout == 5.0
    assert service.client.timeout == 5.0


def test_init_with_env_api_key() -> None:
    with patch.dict(os.environ, {"OPENAI_API_KEY": "env-key"}):
        service = EmbeddingService(model="text-embedding-3-small")
        assert service.client.api_key == "env-key"


def test_init_defaults(embedding_service) -> None:
    assert embedding_service.model == config.EMBEDDING_MODEL
    assert embedding_service.timeout == config.EMBEDDING_TIMEOUT_SECONDS
    assert embedding_service.client.max_retries == config.OPENAI_MAX_RETRIES


def test_get_embedding_success(openai_embeddings_api_mock, embedding_service) -> None:
    openai_embeddings_api_mock.return_value = create_mock_openai_response(
        [[0.1, 0.2, 0.3, 0.4, 0.5]]
    )

    result = embedding_service.get_embedding("test text")

    openai_embeddings_api_mock.assert_called_once_with(
        model=config.EMBEDDING_MODEL,
        input="test text",
    )
    assert result == (0.1, 0.2, 0.3, 0.4, 0.5)
    assert all(isinstance(value, float) for value in result)


@pytest.mark.parametrize(
    "error_factory",
    [make_timeout_error, make_connection_error],
)
def test_get_embedding_api_error(
    openai_embeddings_api_mock, embedding_service, error_factory
) -> None:
    openai_embeddings_api_mock.side_effect = error_factory()

    with pytest.raises(EmbeddingUnavailable) as exc_info:
        embedding_service.get_embedding("test text")

    assert exc_info.value.__cause__ is not None


def test_get_embedding_empty_response(
    openai_embeddings_api_mock, embedding_service
) -> None:
    empty = Mock()
    empty.data = []
    openai_embeddings_api_mock.return_value = empty

    with pytest.raises(EmbeddingUnavailable):
        embedding_service.get_embedding("test text")


def test_get_embedding_empty_vector(
    openai_embeddings_api_mock, embedding_service
) -> None:
    openai_embeddings_api_mock.return_value = create_mock_openai_response([[]])

    with pytest.raises(EmbeddingUnavailable, match="empty vector"):
        embedding_service.get_embedding("test text")


def test_get_embeddings_serial_pauses_between_calls(
    openai_embeddings_api_mock, embedding_service
) -> None:
    openai_embeddings_api_mock.side_effect = [
        create_mock_openai_response([[0.1, 0.2]]),
        create_mock_openai_response([[0.3, 0.4]]),
        create_mock_openai_response([[0.5, 0.6]]),
    ]
    sleep = Mock()

    results = embedding_service.get_embeddings_serial(
        ["a", "b", "c"], delay_seconds=0.1, sleep=sleep
    )

    assert results == [(0.1, 0.2), (0.3, 0.4), (0.5, 0.6)]
    assert openai_embeddings_api_mock.call_args_list == [
        call(model=config.EMBEDDING_MODEL, input="a"),
        call(model=config.EMBEDDING_MODEL, input="b"),
        call(model=config.EMBEDDING_MODEL, input="c"),
    ]
    assert sleep.call_args_list == [call(0.1)] * 3


def test_get_embeddings_serial_stops_on_failure(
    openai_embeddings_api_mock, embedding_service
) -> None:
    openai_embeddings_api_mock.side_effect = [
        create_mock_openai_response([[0.1, 0.2]]),
        make_connection_error(),
        create_mock_openai_response([[0.5, 0.6]]),
    ]

    with pytest.raises(EmbeddingUnavailable):
        embedding_service.get_embeddings_serial(
            ["a", "b", "c"], delay_seconds=0, sleep=Mock()
        )

    assert openai_embeddings_api_mock.call_count == 2


def test_get_embeddings_serial_without_delay(
    openai_embeddings_api_mock, embedding_service
) -> None:
    openai_embeddings_api_mock.return_value = create_mock_openai_response([[1.0]])
    sleep = Mock()

    embedding_service.get_embeddings_serial(["a", "b"], delay_seconds=0, sleep=sleep)

    sleep.assert_not_called()
