import asyncio
import json
from dataclasses import dataclass, field
from typing import List, Optional

import google.generativeai as genai
from groq import AsyncGroq

from legalai.config import settings
from legalai.errors import UpstreamFailure
from legalai.prompts.templates import ANALYSIS_PROMPT, BASE_SYSTEM_PROMPT
from legalai.utils.logger import logger


@dataclass
class AnalysisResult:
    summary: str
    risks: List[str] = field(default_factory=list)
    key_points: List[str] = field(default_factory=list)
    raw: str = ""

    def to_dict(self) -> dict:
        return {
            "summary": self.summary,
            "risks": self.risks,
            "keyPoints": self.key_points,
            "raw": self.raw,
        }


def _as_list(value) -> List[str]:
    if isinstance(value, list):
        return [str(item).strip() for item in value if str(item).strip()]
    if isinstance(value, str) and value.strip():
        return [value.strip()]
    return []


def parse_analysis(raw: str) -> AnalysisResult:
    """Turns a model reply into an AnalysisResult. Non-JSON replies are kept as freeform text."""
    cleaned = raw.strip()
    # Strip markdown code fences if present
    if cleaned.startswith("```"):
        cleaned = cleaned.split("\n", 1)[1] if "\n" in cleaned else ""
        cleaned = cleaned.rsplit("```", 1)[0]

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        logger.warning("Analysis reply was not JSON; returning freeform text")
        return AnalysisResult(summary=raw.strip(), raw=raw)

    if not isinstance(data, dict):
        return AnalysisResult(summary=raw.strip(), raw=raw)

    return AnalysisResult(
        summary=str(data.get("summary", "")).strip(),
        risks=_as_list(data.get("risks")),
        key_points=_as_list(data.get("key_points", data.get("keyPoints"))),
        raw=raw,
    )


class LLMService:
    def __init__(
        self,
        gemini_key: Optional[str] = settings.GEMINI_API_KEY,
        groq_key: Optional[str] = settings.GROQ_API_KEY,
        char_limit: int = settings.ANALYSIS_CHAR_LIMIT,
        gemini_model: str = settings.GEMINI_MODEL,
        groq_model: str = settings.GROQ_MODEL,
    ):
        self.char_limit = char_limit
        self.groq_model = groq_model

        # Initialize Gemini
        self.gemini_key = gemini_key
        if self.gemini_key:
            genai.configure(api_key=self.gemini_key)
            self.gemini_model = genai.GenerativeModel(gemini_model)
        else:
            self.gemini_model = None

        # Initialize Groq
        self.groq_client = AsyncGroq(api_key=groq_key) if groq_key else None

        if not self.gemini_model and not self.groq_client:
            logger.warning("No GEMINI_API_KEY or GROQ_API_KEY configured; document analysis is disabled.")

    # ==================== TEXT GENERATION ====================

    async def generate_gemini(self, prompt: str) -> str:
        """Generates text using Gemini."""
        if not self.gemini_model:
            raise ValueError("Gemini API key not configured.")
        try:
            response = await asyncio.to_thread(
                self.gemini_model.generate_content,
                f"{BASE_SYSTEM_PROMPT}\n\n{prompt}"
            )
            return response.text
        except Exception as e:
            logger.error(f"Gemini API Error: {str(e)}")
            raise e

    async def generate_groq(self, prompt: str) -> str:
        """Generates text using Groq Llama 3."""
        if not self.groq_client:
            raise ValueError("API key not configured for Groq.")
        try:
            response = await self.groq_client.chat.completions.create(
                messages=[
                    {"role": "system", "content": BASE_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt}
                ],
                model=self.groq_model,
                temperature=0.2,
                max_tokens=1200,
            )
            return response.choices[0].message.content
        except Exception as e:
            logger.error(f"Groq API Error: {str(e)}")
            raise e

    # ==================== DOCUMENT ANALYSIS ====================

    async def analyze(self, text: str) -> AnalysisResult:
        """Runs risk/summary analysis with the best available provider, falling back to Groq."""
        if not self.gemini_model and not self.groq_client:
            raise UpstreamFailure("Document analysis is not configured.")

        prompt = ANALYSIS_PROMPT.format(document=text[:self.char_limit])

        if self.gemini_model:
            try:
                return parse_analysis(await self.generate_gemini(prompt))
            except Exception as e:
                if not self.groq_client:
                    raise UpstreamFailure("Document analysis failed. Please try again.") from e
                logger.error(f"Gemini failed: {str(e)}. Falling back to Groq.")

        try:
            return parse_analysis(await self.generate_groq(prompt))
        except Exception as e:
            raise UpstreamFailure("Document analysis failed. Please try again.") from e
