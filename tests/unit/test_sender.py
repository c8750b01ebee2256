"""Tests for the destination sender and its payload format fallback."""

import asyncio
import pytest
import requests
from unittest.mock import Mock, patch

from video_digest.delivery.gateway import EvolutionGateway
from video_digest.delivery.sender import (
    DestinationSender, SendContext, PAYLOAD_SHAPES,
    text_payload, legacy_text_payload, STRUCTURAL_REJECTION_STATUSES,
)
from video_digest.errors import TransportError, ErrorCode


def _response(status_code, text=""):
    response = Mock()
    response.status_code = status_code
    response.text = text
    return response


@pytest.fixture
def sender():
    return DestinationSender(EvolutionGateway("https://evo.example.com", "secret", "bot"))


def _bodies(mock_post):
    return [c.kwargs["json"] for c in mock_post.call_args_list]


def test_payload_shapes_order():
    """Newest protocol first, legacy second."""
    assert [name for name, _ in PAYLOAD_SHAPES] == ["v2", "v1"]


def test_text_payload():
    ctx = SendContext(destination="5511999998888", message="Hello")
    assert text_payload(ctx) == {"number": "5511999998888", "text": "Hello"}


def test_legacy_text_payload():
    ctx = SendContext(destination="123@g.us", message="Hello", presence_delay_ms=1200, presence="composing")
    assert legacy_text_payload(ctx) == {
        "number": "123@g.us",
        "options": {"delay": 1200, "presence": "composing"},
        "textMessage": {"text": "Hello"},
    }


def test_structural_rejection_statuses():
    assert STRUCTURAL_REJECTION_STATUSES == {400, 404, 422}


@patch('video_digest.delivery.gateway.requests.post')
def test_first_shape_success(mock_post, sender):
    mock_post.return_value = _response(201, '{"key": {"id": "ABC"}}')

    outcome = asyncio.run(sender.send("Hello", "5511999998888"))

    assert outcome.succeeded is True
    assert outcome.destination == "5511999998888"
    assert outcome.error_detail is None
    assert mock_post.call_count == 1
    assert _bodies(mock_post)[0] == {"number": "5511999998888", "text": "Hello"}


@pytest.mark.parametrize("status", [400, 404, 422])
@patch('video_digest.delivery.gateway.requests.post')
def test_fallback_to_legacy_shape(mock_post, status, sender):
    """A structural rejection of v2 falls through to the v1 body."""
    mock_post.side_effect = [_response(status, "bad request"), _response(200)]

    outcome = asyncio.run(sender.send("Hello", "123@g.us"))

    assert outcome.succeeded is True
    assert mock_post.call_count == 2
    assert "textMessage" in _bodies(mock_post)[1]


@patch('video_digest.delivery.gateway.requests.post')
def test_all_shapes_rejected_is_failed_outcome(mock_post, sender):
    """Exhausting every shape returns a failed outcome, not an exception."""
    mock_post.side_effect = [_response(400, "first"), _response(422, "second")]

    outcome = asyncio.run(sender.send("Hello", "999"))

    assert outcome.succeeded is False
    assert outcome.destination == "999"
    assert "HTTP 422" in outcome.error_detail
    assert "second" in outcome.error_detail


@pytest.mark.parametrize("status", [401, 403, 429, 500, 502, 301])
@patch('video_digest.delivery.gateway.requests.post')
def test_other_status_aborts_without_fallback(mock_post, status, sender):
    mock_post.return_value = _response(status, "oops")

    with pytest.raises(TransportError) as exc:
        asyncio.run(sender.send("Hello", "5511999998888"))

    assert mock_post.call_count == 1
    assert exc.value.code == ErrorCode.GATEWAY_UNEXPECTED_STATUS
    assert exc.value.status_code == status
    assert exc.value.destination == "5511999998888"


@patch('video_digest.delivery.gateway.requests.post')
def test_server_error_after_rejection_aborts(mock_post, sender):
    mock_post.side_effect = [_response(400), _response(503)]

    with pytest.raises(TransportError):
        asyncio.run(sender.send("Hello", "1"))
    assert mock_post.call_count == 2


@patch('video_digest.delivery.gateway.requests.post')
def test_timeout_is_transport_error(mock_post, sender):
    """A timeout never counts as a structural rejection."""
    mock_post.side_effect = requests.Timeout()

    with pytest.raises(TransportError) as exc:
        asyncio.run(sender.send("Hello", "1"))
    assert exc.value.code == ErrorCode.GATEWAY_TIMEOUT
    assert mock_post.call_count == 1


def test_from_config_uses_delivery_settings():
    config = {
        "gateway": {"base_url": "http://evo", "api_key": "k", "instance": "i"},
        "timeouts": {"status": 10, "send": 30},
        "delivery": {"presence_delay_ms": 500, "presence": "recording"},
    }
    sender = DestinationSender.from_config(config)
    assert sender.presence_delay_ms == 500
    assert sender.presence == "recording"


@patch('video_digest.delivery.gateway.requests.post')
def test_custom_shape_list(mock_post):
    mock_post.return_value = _response(404)
    only = [("plain", lambda ctx: {"to": ctx.destination, "body": ctx.message})]
    sender = DestinationSender(EvolutionGateway("http://evo", "k", "i"), shapes=only)

    outcome = asyncio.run(sender.send("m", "d"))
    assert outcome.succeeded is False
    assert _bodies(mock_post) == [{"to": "d", "body": "m"}]
