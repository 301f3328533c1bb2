"""
AI-assisted event copy generation.
Falls back to canned content per category when the model is unavailable.
"""

import logging
from functools import lru_cache
from typing import Any, Dict, Optional

import openai

from ..core.config import config
from ..core.exceptions import MeetspaceError, ValidationFailed

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are an event marketing specialist who creates compelling event content."

MAX_TOKENS = {
    "title": 30,
    "shortDescription": 100,
    "description": 300,
}

FALLBACK_CONTENT = {
    "title": {
        "tech": "Tech Innovation Summit",
        "business": "Business Growth & Networking Conference",
        "arts": "Creative Arts Festival",
        "sports": "Championship Sports Tournament",
        "health": "Wellness & Health Expo",
        "education": "Educational Leadership Symposium",
        "social": "Community Gathering & Celebration",
        "other": "Special Event Experience",
    },
    "shortDescription": {
        "tech": "Join industry leaders for the latest in tech innovation and cutting-edge developments.",
        "business": "Connect with professionals and learn strategies to accelerate your business growth.",
        "arts": "Experience creative expression through various art forms in this immersive festival.",
        "sports": "Watch top athletes compete in an exciting championship tournament.",
        "health": "Discover holistic approaches to improve your wellbeing and health.",
        "education": "Explore new teaching methods and educational leadership principles.",
        "social": "Build meaningful connections in this engaging community celebration.",
        "other": "A unique event experience crafted to inspire and engage participants.",
    },
    "description": {
        "tech": (
            "Spend a day exploring new technology with industry experts, builders and enthusiasts. "
            "Hands-on workshops and live demonstrations cover AI, security and the tools shaping "
            "how software gets made, with plenty of time to meet people working across the field."
        ),
        "business": (
            "Keynotes from industry leaders, practical workshops on growth strategy and time to "
            "network with peers. Sessions cover leadership, marketing, finance and operations, and "
            "you will leave with ideas you can put to work in your own organization."
        ),
        "arts": (
            "A celebration of visual art, music, dance, theater and digital media. Browse "
            "exhibitions from established and emerging artists, catch live performances and join "
            "workshops that put you on the creative side of the canvas."
        ),
        "sports": (
            "Top athletes, close matchups and the atmosphere only live sport delivers. Between "
            "fixtures enjoy fan zones, meet-and-greets and activities for all ages."
        ),
        "health": (
            "Health professionals, fitness coaches, nutritionists and mindfulness practitioners "
            "share practical ways to feel better. Join demonstrations and talks, and leave with "
            "habits you can start the next morning."
        ),
        "education": (
            "Educators and researchers meet to discuss teaching practice, inclusive classrooms and "
            "learning technology through keynotes, panels and workshops you can apply straight "
            "away in your own school or program."
        ),
        "social": (
            "An easygoing gathering to meet neighbors, share stories and enjoy good company. "
            "Entertainment and activities keep the conversation flowing from start to finish."
        ),
        "other": (
            "A carefully planned program of activities and conversations designed to engage and "
            "inspire. Whatever brings you along, there is something here worth your time."
        ),
    },
}


@lru_cache(maxsize=None)
def get_openai_client(api_key: str) -> openai.AsyncOpenAI:
    """Get a cached async OpenAI client for ``api_key``."""
    return openai.AsyncOpenAI(api_key=api_key)


def build_prompt(category: str, content_type: str, additional_info: Optional[str] = None) -> str:
    extra = f" The event involves: {additional_info}" if additional_info else ""
    if content_type == "title":
        return f"Generate a catchy and professional title for a {category} event.{extra}"
    if content_type == "shortDescription":
        return (
            f"Write a brief one-sentence description for a {category} event "
            f"that would appear in a listing or card.{extra}"
        )
    return (
        f"Write an engaging and detailed description for a {category} event. "
        f"Include what attendees can expect and why they should attend.{extra}"
    )


def fallback_text(category: str, content_type: str) -> str:
    options = FALLBACK_CONTENT[content_type]
    return options.get(category, options["other"])


def is_quota_error(error: Exception) -> bool:
    if isinstance(error, openai.RateLimitError):
        return True
    message = str(error)
    return "429" in message or "quota" in message or getattr(error, "code", None) == "insufficient_quota"


class AIService:
    """
    Generates event titles and descriptions with the OpenAI chat API.
    """

    async def generate(
        self,
        category: Optional[str],
        content_type: Optional[str],
        additional_info: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Generate copy of ``content_type`` for an event in ``category``.

        Returns:
            Dict with text, type and is_from_fallback

        Raises:
            ValidationFailed: missing or unknown category/type
            MeetspaceError: model call failed for a reason other than quota
        """
        if not category or not content_type:
            raise ValidationFailed("Category and type are required", code="MISSING_PARAMETERS")
        if content_type not in MAX_TOKENS:
            raise ValidationFailed(
                "Invalid type. Must be title, description, or shortDescription",
                code="INVALID_TYPE"
            )

        category = category.lower()
        openai_config = await config.get_openai_config()
        if not openai_config["api_key"]:
            logger.warning("OPENAI_API_KEY not configured, using fallback content")
            return self._fallback(category, content_type)

        logger.info(f"Generating {content_type} for {category} event")
        client = get_openai_client(openai_config["api_key"])

        try:
            response = await client.chat.completions.create(
                model=openai_config["model"],
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_prompt(category, content_type, additional_info)},
                ],
                max_tokens=MAX_TOKENS[content_type],
                temperature=openai_config["temperature"],
            )
        except Exception as e:
            if is_quota_error(e):
                logger.warning(f"OpenAI quota exhausted, using fallback {content_type} for {category}: {e}")
                return self._fallback(category, content_type)
            logger.error(f"AI generation error: {e}")
            raise MeetspaceError(str(e), code="AI_GENERATION_FAILED")

        text = (response.choices[0].message.content or "").strip() if response.choices else ""
        if not text:
            raise MeetspaceError("No text was generated", code="AI_GENERATION_FAILED")

        return {"text": text, "type": content_type, "is_from_fallback": False}

    def _fallback(self, category: str, content_type: str) -> Dict[str, Any]:
        return {
            "text": fallback_text(category, content_type),
            "type": content_type,
            "is_from_fallback": True,
        }


# Global AI service instance
ai_service = AIService()
