# backend/mentorverse/api/endpoints/chatbot.py

from fastapi import APIRouter, Depends

from mentorverse.api.deps import get_assistant
from mentorverse.schemas.chatbot import AssistantStatus, ChatReply, ChatRequest
from mentorverse.services.assistant import MentorAssistant

router = APIRouter(prefix="/chatbot", tags=["Chatbot"])


@router.post("", response_model=ChatReply)
async def chat(
    payload: ChatRequest,
    assistant: MentorAssistant = Depends(get_assistant),
):
    """
    [Request] the conversation so far, oldest first; the last entry is the new question
    [Response] the assistant's answer (a canned one when Gemini is not configured)
    """
    return ChatReply(reply=await assistant.reply(payload.messages))


@router.get("/status", response_model=AssistantStatus)
async def chatbot_status(assistant: MentorAssistant = Depends(get_assistant)):
    return AssistantStatus(
        configured=assistant.configured,
        model=assistant.model if assistant.configured else None,
    )
