import asyncio

from google import genai
from loguru import logger


class GeminiService:
    def __init__(self, api_key: str | None = None, model: str = "gemini-2.0-flash"):
        self.model = model
        self.client = None
        if api_key:
            try:
                self.client = genai.Client(api_key=api_key)
            except Exception as e:
                logger.warning(f"Failed to initialize Gemini client: {e}")
        else:
            logger.warning("GEMINI_API_KEY not set. Profile content will use local templates.")

    @property
    def enabled(self) -> bool:
        return self.client is not None

    @staticmethod
    def get_prompt():
        return """
        You are a marketing copywriter for a local services marketplace.
        You write short, warm, confident bios for independent service providers
        and suggest fair starting prices for their work.

        Keep bios:
        - One or two sentences
        - Free of exaggerated claims
        - Focused on experience, reliability and the area they serve
        """

    def generate_content(self, prompt: str) -> str:
        system_prompt = self.get_prompt()
        if not self.client:
            logger.warning("Gemini client not initialized. Skipping AI content generation.")
            return ""
        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=system_prompt + "\n\n" + prompt,
            )
            return (response.text or "").strip()
        except Exception as e:
            logger.exception(f"Error generating content with Gemini: {e}")
            return ""

    async def generate_content_async(self, prompt: str) -> str:
        """Async wrapper to avoid blocking the event loop during network calls."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: self.generate_content(prompt))
