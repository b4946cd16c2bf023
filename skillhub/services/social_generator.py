import re
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, Field

from skillhub.core.constants import (
    BASE_HASHTAGS,
    DEFAULT_IMAGE_PROMPT,
    DEFAULT_SOCIAL_CONTENT,
    MAX_HASHTAGS,
    SERVICE_HASHTAGS,
    SOCIAL_IMAGE_PROMPTS,
    SOCIAL_PLATFORM_SPECS,
    SOCIAL_POST_INSTRUCTIONS,
    SOCIAL_POST_TEMPLATES,
)
from skillhub.core.exceptions import GenerationError
from skillhub.models.metrics import SocialPlatform, SocialPostType
from skillhub.services.content_generator import ask_gemini, parse_json_object
from skillhub.services.gemini import GeminiService

HASHTAG_RE = re.compile(r"#\w+")
IMAGE_LABEL_RE = re.compile(r"^.*?(?:image|photo)[^:]*:", re.IGNORECASE)


class GeneratedSocialPost(BaseModel):
    platform: SocialPlatform
    post_type: SocialPostType
    content: str
    hashtags: list[str] = Field(default_factory=list)
    image_prompt: str = ""
    source: Literal["ai", "partial", "fallback"] = "ai"


def fallback_hashtags(service: str = "") -> list[str]:
    service = (service or "").strip()
    if not service:
        return list(BASE_HASHTAGS)
    specific = SERVICE_HASHTAGS.get(service.lower()) or ("#" + re.sub(r"\s+", "", service),)
    return normalize_hashtags([*BASE_HASHTAGS, *specific])


def fallback_content(name: str, service: str, platform: SocialPlatform, post_type: SocialPostType) -> str:
    if not name or not service:
        return DEFAULT_SOCIAL_CONTENT
    by_platform = SOCIAL_POST_TEMPLATES.get(post_type, SOCIAL_POST_TEMPLATES["promotion"])
    template = by_platform.get(platform, SOCIAL_POST_TEMPLATES["promotion"]["instagram"])
    return template.format(name=name, service=service.lower(), tag=re.sub(r"\s+", "", service))


def fallback_image_prompt(service: str, post_type: SocialPostType) -> str:
    if not service:
        return DEFAULT_IMAGE_PROMPT
    template = SOCIAL_IMAGE_PROMPTS.get(post_type, SOCIAL_IMAGE_PROMPTS["promotion"])
    return template.format(service=service.lower())


def normalize_hashtags(tags: Any) -> list[str]:
    """Distinct ``#``-prefixed tags without spaces, first-seen order, capped at MAX_HASHTAGS."""
    if isinstance(tags, str):
        tags = tags.split()
    if not isinstance(tags, (list, tuple)):
        return []
    seen: dict[str, str] = {}
    for tag in tags:
        if not isinstance(tag, str):
            continue
        tag = re.sub(r"\s+", "", tag.strip().lstrip("#"))
        if tag and tag.lower() not in seen:
            seen[tag.lower()] = f"#{tag}"
    return list(seen.values())[:MAX_HASHTAGS]


class SocialPostGenerator:
    """
    Drafts a marketing post for a provider's social media account.

    Same shape as the bio generator: ask Gemini for JSON, scrape plain text when the
    JSON is unusable, and fall back to per-platform templates when the model is off,
    slow or says nothing useful. ``generate`` never raises.
    """

    def __init__(self, gemini: GeminiService, timeout: float = 20.0):
        self.gemini = gemini
        self.timeout = timeout

    def build_prompt(self, name: str, service: str, platform: SocialPlatform, post_type: SocialPostType) -> str:
        return (
            f"Create a {post_type} social media post for {platform} for {name}, a {service} professional "
            f"in South Africa.\n\n"
            f"Platform: {SOCIAL_PLATFORM_SPECS[platform]}\n"
            f"Post Type: {SOCIAL_POST_INSTRUCTIONS[post_type]}\n\n"
            "Requirements:\n"
            "- Write engaging, authentic content that sounds natural\n"
            "- Include relevant South African context where appropriate\n"
            "- Suggest 5-8 relevant hashtags including local ones\n"
            "- Keep tone professional but friendly\n"
            "- Include a call-to-action\n"
            "- Suggest an image description for visual content\n\n"
            "Please respond in this exact JSON format:\n"
            "{\n"
            '  "content": "The main post content here",\n'
            '  "hashtags": ["#hashtag1", "#hashtag2", "#hashtag3"],\n'
            '  "imagePrompt": "Description of suggested image/photo"\n'
            "}"
        )

    async def generate(
        self,
        name: str,
        service: str,
        platform: SocialPlatform = "instagram",
        post_type: SocialPostType = "promotion",
    ) -> GeneratedSocialPost:
        try:
            prompt = self.build_prompt(name, service, platform, post_type)
            text = await ask_gemini(self.gemini, prompt, self.timeout)
            return self.parse_response(text, name, service, platform, post_type)
        except Exception as e:
            logger.warning(f"Social post generation failed for {name!r} ({platform}/{post_type}), using fallback: {e}")
            return self.fallback(name, service, platform, post_type)

    @staticmethod
    def fallback(
        name: str, service: str, platform: SocialPlatform, post_type: SocialPostType
    ) -> GeneratedSocialPost:
        return GeneratedSocialPost(
            platform=platform,
            post_type=post_type,
            content=fallback_content(name, service, platform, post_type),
            hashtags=fallback_hashtags(service),
            image_prompt=fallback_image_prompt(service, post_type),
            source="fallback",
        )

    def parse_response(
        self, text: str, name: str, service: str, platform: SocialPlatform, post_type: SocialPostType
    ) -> GeneratedSocialPost:
        data = parse_json_object(text)
        if data is not None:
            content = data.get("content")
            if isinstance(content, str) and content.strip():
                hashtags = normalize_hashtags(data.get("hashtags"))
                image_prompt = data.get("imagePrompt") or data.get("image_prompt")
                image_prompt = image_prompt.strip() if isinstance(image_prompt, str) else ""
                return GeneratedSocialPost(
                    platform=platform,
                    post_type=post_type,
                    content=content.strip(),
                    hashtags=hashtags or fallback_hashtags(service),
                    image_prompt=image_prompt or fallback_image_prompt(service, post_type),
                    source="ai" if hashtags and image_prompt else "partial",
                )
            logger.debug(f"Gemini social post JSON has no content: {data}")

        logger.warning("Failed to parse JSON from Gemini social post, scanning plain text")
        content, hashtags, image_prompt = self._scan_lines(text)
        if not content and not hashtags:
            raise GenerationError("Gemini response contained neither post content nor hashtags")

        return GeneratedSocialPost(
            platform=platform,
            post_type=post_type,
            content=content or fallback_content(name, service, platform, post_type),
            hashtags=hashtags or fallback_hashtags(service),
            image_prompt=image_prompt or fallback_image_prompt(service, post_type),
            source="partial",
        )

    @staticmethod
    def _scan_lines(text: str) -> tuple[str, list[str], str]:
        content: list[str] = []
        tags: list[str] = []
        image_prompt = ""
        section = "content"

        for line in (line.strip() for line in text.splitlines()):
            if not line:
                continue
            lowered = line.lower()
            if "hashtag" in lowered:
                section = "hashtags"
                tags.extend(HASHTAG_RE.findall(line))
            elif "image" in lowered or "photo" in lowered:
                section = "image"
                image_prompt = IMAGE_LABEL_RE.sub("", line).strip()
            elif line.startswith("#"):
                tags.extend(HASHTAG_RE.findall(line))
            elif section == "content":
                content.append(line)
            elif section == "hashtags":
                tags.extend(HASHTAG_RE.findall(line))

        body = "\n".join(content).strip()
        body = re.sub(r"^\**\s*(?:post\s+)?content\s*\**\s*:\s*", "", body, flags=re.IGNORECASE)
        return body, normalize_hashtags(tags), image_prompt
