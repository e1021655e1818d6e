import asyncio
from types import SimpleNamespace

import pytest

from legalai.config import Settings
from legalai.dependencies import build_services
from legalai.errors import UpstreamFailure
from legalai.services.llm_service import LLMService, parse_analysis


def test_parse_json_reply():
    result = parse_analysis('{"summary": "An NDA.", "risks": ["Perpetual term"], "key_points": ["Mutual"]}')
    assert result.summary == "An NDA."
    assert result.risks == ["Perpetual term"]
    assert result.key_points == ["Mutual"]


def test_parse_fenced_json_reply():
    raw = '```json\n{"summary": "A lease.", "risks": "Auto-renewal", "keyPoints": []}\n```'
    result = parse_analysis(raw)
    assert result.summary == "A lease."
    assert result.risks == ["Auto-renewal"]
    assert result.key_points == []
    assert result.raw == raw


def test_parse_freeform_reply():
    result = parse_analysis("The contract looks one-sided.")
    assert result.summary == "The contract looks one-sided."
    assert result.risks == []


def test_analyze_without_providers_is_upstream_failure():
    service = LLMService(gemini_key=None, groq_key=None)
    with pytest.raises(UpstreamFailure):
        asyncio.run(service.analyze("text"))


def test_analyze_falls_back_to_groq(monkeypatch):
    service = LLMService(gemini_key=None, groq_key=None, char_limit=10)
    service.gemini_model = object()
    service.groq_client = object()
    prompts = []

    async def failing_gemini(prompt):
        raise RuntimeError("quota")

    async def groq(prompt):
        prompts.append(prompt)
        return '{"summary": "ok", "risks": [], "key_points": []}'

    monkeypatch.setattr(service, "generate_gemini", failing_gemini)
    monkeypatch.setattr(service, "generate_groq", groq)

    result = asyncio.run(service.analyze("0123456789ABCDEF"))

    assert result.summary == "ok"
    assert "0123456789" in prompts[0]
    assert "ABCDEF" not in prompts[0]


def test_analyze_gemini_failure_without_fallback(monkeypatch):
    service = LLMService(gemini_key=None, groq_key=None)
    service.gemini_model = object()

    async def failing_gemini(prompt):
        raise RuntimeError("boom")

    monkeypatch.setattr(service, "generate_gemini", failing_gemini)
    with pytest.raises(UpstreamFailure):
        asyncio.run(service.analyze("text"))


def test_groq_uses_configured_model():
    requests = []

    async def create(**kwargs):
        requests.append(kwargs)
        message = SimpleNamespace(content='{"summary": "ok"}')
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    service = LLMService(gemini_key=None, groq_key=None, groq_model="llama-custom")
    service.groq_client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))

    assert asyncio.run(service.generate_groq("prompt")) == '{"summary": "ok"}'
    assert requests[0]["model"] == "llama-custom"


def test_build_services_passes_model_settings():
    cfg = Settings(_env_file=None, GEMINI_API_KEY=None, GROQ_API_KEY=None, GROQ_MODEL="llama-from-settings",
                   SUPABASE_URL=None, SUPABASE_KEY=None)
    assert build_services(cfg).analyzer.groq_model == "llama-from-settings"
