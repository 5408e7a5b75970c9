import json

import httpx

from writing_core.domain.models import ChatMessage
from writing_core.providers.gemini_client import GeminiProvider


def candidate(text):
    return "data: " + json.dumps({"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]})


def test_gemini_stream_ends_at_end_of_body():
    captured = {}

    def handler(request):
        captured["request"] = request
        body = "\n\n".join([candidate("Once "), candidate("upon "), "data: {oops", candidate("a time")]) + "\n"
        return httpx.Response(200, content=body.encode("utf-8"), headers={"content-type": "text/event-stream"})

    provider = GeminiProvider("AIza-test", client=httpx.Client(transport=httpx.MockTransport(handler)))
    history = [
        ChatMessage.user("tell me a story"),
        ChatMessage.assistant("sure"),
        ChatMessage.user("go on"),
    ]
    chunks = list(provider.stream_completion(history, "You are a storyteller."))
    assert chunks == ["Once ", "upon ", "a time"]

    req = captured["request"]
    assert req.url.host == "generativelanguage.googleapis.com"
    assert req.url.path == "/v1beta/models/gemini-2.0-flash:streamGenerateContent"
    assert req.url.params["key"] == "AIza-test"
    assert req.url.params["alt"] == "sse"
    assert "Authorization" not in req.headers

    body = json.loads(req.content)
    assert [c["role"] for c in body["contents"]] == ["user", "model", "user"]
    assert body["contents"][1]["parts"] == [{"text": "sure"}]
    assert body["systemInstruction"] == {"parts": [{"text": "You are a storyteller."}]}
    assert body["generationConfig"] == {"temperature": 0.7, "maxOutputTokens": 8192}


def test_gemini_done_line_is_not_a_sentinel():
    def handler(request):
        body = "\n".join([candidate("a"), "data: [DONE]", candidate("b")]) + "\n"
        return httpx.Response(200, content=body.encode("utf-8"))

    provider = GeminiProvider("AIza-test", client=httpx.Client(transport=httpx.MockTransport(handler)))
    assert list(provider.stream_completion([ChatMessage.user("hi")], "")) == ["a", "b"]


def test_gemini_system_instruction_omitted_when_blank():
    provider = GeminiProvider("AIza-test", model_name="gemini-1.5-pro")
    payload = provider._build_payload([ChatMessage.system("x"), ChatMessage.user("y")], "  ")
    assert "systemInstruction" not in payload
    # system 角色映射为 user
    assert [c["role"] for c in payload["contents"]] == ["user", "user"]
    assert provider.model_name == "gemini-1.5-pro"


def test_gemini_not_configured(monkeypatch):
    class ExplodingClient:
        def __init__(self, *a, **kw):
            raise AssertionError("no network call expected")

    monkeypatch.setattr("httpx.Client", ExplodingClient)
    provider = GeminiProvider(None)
    chunks = list(provider.stream_completion([ChatMessage.user("hi")], "sys"))
    assert chunks == ["Error: Gemini API key not configured. Please set it in Settings."]


def test_gemini_http_error():
    def handler(request):
        return httpx.Response(400, text="API key not valid")

    provider = GeminiProvider("AIza-test", client=httpx.Client(transport=httpx.MockTransport(handler)))
    chunks = list(provider.stream_completion([ChatMessage.user("hi")], ""))
    assert chunks == ["Gemini API error: 400 Bad Request - API key not valid"]


def test_gemini_timeout_error():
    def handler(request):
        raise httpx.ConnectTimeout("timed out")

    provider = GeminiProvider("AIza-test", client=httpx.Client(transport=httpx.MockTransport(handler)))
    chunks = list(provider.stream_completion([ChatMessage.user("hi")], ""))
    assert chunks == ["Error connecting to Gemini: timed out"]
    # 错误文本里不能出现 API Key
    assert "AIza-test" not in chunks[0]


def test_gemini_http_error_closes_response():
    responses = []

    def handler(request):
        resp = httpx.Response(503, text="overloaded")
        responses.append(resp)
        return resp

    provider = GeminiProvider("AIza-test", client=httpx.Client(transport=httpx.MockTransport(handler)))
    chunks = list(provider.stream_completion([ChatMessage.user("hi")], ""))
    assert chunks == ["Gemini API error: 503 Service Unavailable - overloaded"]
    assert responses[0].is_closed
