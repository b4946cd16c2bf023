import asyncio
import json
import math
import re
import zlib
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel

from skillhub.core.constants import (
    BASE_PRICES,
    DEFAULT_BASE_PRICE,
    EXPERIENCE_PRICE_STEP,
    FALLBACK_BIO_TEMPLATES,
)
from skillhub.core.exceptions import GenerationError
from skillhub.services.gemini import GeminiService

JSON_BLOCK_RE = re.compile(r"\{[\s\S]*\}")
CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
BIO_RE = re.compile(r"""bio["'\s]*:\s*"?([^"\n]+)""", re.IGNORECASE)
PRICE_RE = re.compile(r"""price["'\s]*:\s*["']?(?:[A-Za-z]{1,3}\s*)?(\d+(?:\.\d+)?)""", re.IGNORECASE)


class GeneratedContent(BaseModel):
    bio: str
    price: int
    source: Literal["ai", "partial", "fallback"] = "ai"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def fallback_price(skill: str, years: int) -> int:
    base_price = BASE_PRICES.get((skill or "").strip().lower(), DEFAULT_BASE_PRICE)
    return round_half_up(base_price * (1 + max(years, 0) * EXPERIENCE_PRICE_STEP))


def fallback_bio(name: str, skill: str, years: int, location: str) -> str:
    # crc32 keeps the template choice stable across processes, unlike hash()
    index = zlib.crc32(name.encode("utf-8")) % len(FALLBACK_BIO_TEMPLATES)
    return FALLBACK_BIO_TEMPLATES[index].format(name=name, skill=skill.lower(), years=years, location=location)


async def ask_gemini(gemini: GeminiService, prompt: str, timeout: float) -> str:
    """One Gemini call bounded by ``timeout``; raises GenerationError when there is nothing usable."""
    if not gemini.enabled:
        raise GenerationError("Gemini API key not configured")
    try:
        text = await asyncio.wait_for(gemini.generate_content_async(prompt), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise GenerationError(f"Gemini did not answer within {timeout}s") from e
    if not text:
        raise GenerationError("No content generated from Gemini")
    return text


def parse_json_object(text: str) -> dict[str, Any] | None:
    """The whole reply (code fences stripped) or its outermost ``{...}`` block, when it is a JSON object."""
    candidates = [CODE_FENCE_RE.sub("", text.strip())]
    match = JSON_BLOCK_RE.search(text)
    if match:
        candidates.append(match.group(0))
    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except (json.JSONDecodeError, TypeError):
            continue
        if isinstance(data, dict):
            return data
    return None


class ContentGenerator:
    """
    Produces a bio and a suggested price for a new profile.

    Asks Gemini first and falls back to local templates and the price table on any
    failure, so callers always get usable content.
    """

    def __init__(self, gemini: GeminiService, timeout: float = 20.0, currency: str = "ZAR"):
        self.gemini = gemini
        self.timeout = timeout
        self.currency = currency

    def build_prompt(self, name: str, skill: str, years: int, location: str) -> str:
        return (
            f"You are helping a skilled township freelancer write a short professional bio and estimate a "
            f"fair starting price. Their name is {name}, they are a {skill} with {years} years of experience "
            f"in {location}. Write a warm, confident, 1-2 sentence bio. Then suggest a fair starting price in "
            f"{self.currency}.\n\n"
            "Please respond in this exact JSON format:\n"
            '{\n  "bio": "Professional bio here",\n  "price": 250\n}'
        )

    async def generate(self, name: str, skill: str, years: int, location: str) -> GeneratedContent:
        try:
            text = await self._call_model(self.build_prompt(name, skill, years, location))
            return self.parse_response(text, name, skill, years, location)
        except Exception as e:
            logger.warning(f"Content generation failed for {name!r}, using fallback: {e}")
            return GeneratedContent(
                bio=fallback_bio(name, skill, years, location),
                price=fallback_price(skill, years),
                source="fallback",
            )

    async def _call_model(self, prompt: str) -> str:
        return await ask_gemini(self.gemini, prompt, self.timeout)

    def parse_response(self, text: str, name: str, skill: str, years: int, location: str) -> GeneratedContent:
        """Parse model output, strict JSON first, then a best-effort field scrape."""
        data = parse_json_object(text)
        if data is not None:
            bio = data.get("bio")
            price = self._coerce_price(data.get("price"))
            if isinstance(bio, str) and bio.strip() and price is not None:
                return GeneratedContent(bio=bio.strip(), price=price, source="ai")
            logger.debug(f"Gemini JSON missing usable fields: {data}")

        logger.warning("Failed to parse JSON from Gemini, using regex extraction")
        bio_match = BIO_RE.search(text)
        price_match = PRICE_RE.search(text)
        bio = bio_match.group(1).strip().rstrip(",") if bio_match else ""
        price = self._coerce_price(price_match.group(1)) if price_match else None

        if not bio and price is None:
            raise GenerationError("Gemini response contained neither bio nor price")

        return GeneratedContent(
            bio=bio or fallback_bio(name, skill, years, location),
            price=price if price is not None else fallback_price(skill, years),
            source="partial",
        )

    @staticmethod
    def _coerce_price(value: Any) -> int | None:
        if isinstance(value, bool) or value is None:
            return None
        try:
            price = float(value)
        except (TypeError, ValueError):
            return None
        if not math.isfinite(price) or price < 0:
            return None
        return round_half_up(price)
