import httpx
import pytest
from openai import APIConnectionError, APITimeoutError, AuthenticationError, InternalServerError, RateLimitError

from rexeli.core.exceptions import UpstreamAIError, UpstreamTimeoutError
from rexeli.services.openai_service import translate_openai_error

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def _response(status: int) -> httpx.Response:
    return httpx.Response(status, request=REQUEST)


@pytest.mark.parametrize(
    ("exc", "message"),
    [
        (
            AuthenticationError("bad key", response=_response(401), body=None),
            "OpenAI API authentication failed. Please check your API key.",
        ),
        (
            RateLimitError("You exceeded your current quota", response=_response(429), body=None),
            "OpenAI API quota exceeded. Please check your billing.",
        ),
        (
            RateLimitError("Too many requests", response=_response(429), body=None),
            "OpenAI API rate limit exceeded. Please try again later.",
        ),
        (
            InternalServerError("upstream down", response=_response(503), body=None),
            "OpenAI API server error. Please try again later.",
        ),
    ],
)
def test_provider_errors_become_actionable_messages(exc, message):
    translated = translate_openai_error(exc)

    assert isinstance(translated, UpstreamAIError)
    assert translated.status_code == 502
    assert translated.message == message


def test_timeout_maps_to_504():
    translated = translate_openai_error(APITimeoutError(request=REQUEST))

    assert isinstance(translated, UpstreamTimeoutError)
    assert translated.status_code == 504


def test_other_errors_keep_provider_text():
    translated = translate_openai_error(APIConnectionError(message="connection reset", request=REQUEST))

    assert translated.message == "OpenAI service error: connection reset"
