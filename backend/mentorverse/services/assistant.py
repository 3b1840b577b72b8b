# backend/mentorverse/services/assistant.py

import logging
from typing import List, Optional

from google import genai

from mentorverse.core import constants as C
from mentorverse.core.exceptions import UpstreamError
from mentorverse.schemas.chatbot import ChatMessage

logger = logging.getLogger(__name__)

SITE_CONTEXT = (
    "You are MentorVerse AI, the official assistant for a mentorship platform that connects "
    "mentees with mentors, manages doubt rooms, and supports career growth.\n"
    "Always ground your answers in MentorVerse features: mentorship matching, session "
    "preparation, doubt room collaboration, and mentee support.\n"
    "If mentors are unavailable, act as the fallback guide: answer mentee questions, suggest "
    "next steps, and recommend study plans.\n"
    "When helpful, include 2-3 trusted learning resources with direct links and a short "
    "description for every link.\n"
    "Be encouraging, concise, and offer actionable tips. Do not invent site features or "
    "external offers. Always respond as MentorVerse AI."
)

OFFLINE_REPLIES = [
    "I'm here to help with your mentorship journey! While I'm currently offline, I recommend "
    "browsing our available mentors or posting your question in a doubt room where other "
    "mentees and mentors can assist you.",
    "Great question! Although my AI features are temporarily unavailable, you can get immediate "
    "help by connecting with one of our expert mentors or joining an active doubt room discussion.",
    "I'd love to help you with that! For now, I recommend booking a session with one of our "
    "mentors who can provide personalized guidance on your topic.",
]

ERROR_REPLY = (
    "I'm experiencing some technical difficulties right now. For immediate assistance, I "
    "recommend connecting with one of our mentors or posting your question in a doubt room "
    "where the community can help you!"
)


def build_prompt(messages: List[ChatMessage]) -> str:
    """Renders the last few turns as a transcript after the persona text."""
    recent = messages[-C.CHAT_HISTORY_LIMIT:]
    lines = []
    for m in recent:
        speaker = "Mentee" if m.role == "user" else "MentorVerse AI"
        lines.append(f"{speaker}: {m.text}")
    conversation = "\n".join(lines)
    return f"{SITE_CONTEXT}\n\nConversation so far:\n{conversation}\n\nMentorVerse AI:"


def offline_reply(messages: List[ChatMessage]) -> str:
    # deterministic pick so the same question gets the same canned answer
    last = messages[-1].text if messages else ""
    return OFFLINE_REPLIES[len(last) % len(OFFLINE_REPLIES)]


class MentorAssistant:
    """
    Thin wrapper over the Gemini client. `client` is injectable; when no
    API key is configured the assistant stays usable with canned replies.
    """

    def __init__(self, api_key: Optional[str], model: str, client=None):
        self.model = model
        if client is not None:
            self.client = client
        elif api_key:
            self.client = genai.Client(api_key=api_key)
        else:
            self.client = None
            logger.warning("GEMINI_API_KEY not set. Chatbot will return fallback responses.")

    @property
    def configured(self) -> bool:
        return self.client is not None

    async def reply(self, messages: List[ChatMessage]) -> str:
        if self.client is None:
            return offline_reply(messages)

        prompt = build_prompt(messages)
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
            )
        except Exception as e:
            # provider outages degrade to a canned answer, never a 500
            logger.error("Gemini request failed: %s", e, exc_info=True)
            return ERROR_REPLY

        reply = (response.text or "").strip()
        if not reply:
            logger.error("Gemini returned an empty reply")
            raise UpstreamError("Empty response from Gemini service")
        return reply
