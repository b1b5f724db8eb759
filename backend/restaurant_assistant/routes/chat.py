from typing import Any, AsyncIterator, List, Optional
import logging

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse

from restaurant_assistant.models import ChatMessage, MessageRole
from restaurant_assistant.services.chat_service import ChatTurn, chat_service
from restaurant_assistant.services.llm_service import llm_service
from restaurant_assistant.services.tool_loop import CompletionProviderError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])

VALID_ROLES = {role.value for role in MessageRole}

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def error_response(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


def validate_chat_request(body: Any) -> Optional[str]:
    """Return the first problem with a chat request body, or None if it is valid."""
    if not body or not isinstance(body, dict):
        return "Request body is required"

    messages = body.get("messages")
    if not messages and not isinstance(messages, list):
        return "Messages array is required"
    if not isinstance(messages, list):
        return "Messages must be an array"
    if not messages:
        return "Messages array cannot be empty"

    for message in messages:
        role = message.get("role") if isinstance(message, dict) else None
        if role not in VALID_ROLES:
            return "Each message must have a valid role (user, assistant, or system)"

        content = message.get("content")
        if not content or not isinstance(content, str):
            return "Each message must have a valid content string"

    return None


async def read_chat_messages(request: Request) -> List[ChatMessage]:
    """
    Parse and validate the request body.

    Raises:
        ValueError: With the client-facing validation message
    """
    try:
        body = await request.json()
    except ValueError:
        body = None

    error = validate_chat_request(body)
    if error:
        raise ValueError(error)

    return [ChatMessage(role=m["role"], content=m["content"]) for m in body["messages"]]


async def first_chunk(stream: AsyncIterator[str]) -> Optional[str]:
    """Pull the first chunk so provider failures surface before the response starts."""
    try:
        return await stream.__anext__()
    except StopAsyncIteration:
        return None


async def deliver_stream(turn: ChatTurn, head: Optional[str] = None) -> AsyncIterator[str]:
    """
    Forward the turn's text to the client as it arrives and record the
    complete answer once the stream is drained.

    A failure after the response has started cannot change the status code,
    so it is written in-band and re-raised.
    """
    chunks = []
    try:
        if head:
            chunks.append(head)
            yield head
        async for delta in turn.text_stream:
            chunks.append(delta)
            yield delta
        turn.save_response("".join(chunks))
    except Exception as e:
        logger.error(f"[CHAT] {turn.conversation_id}: error during streaming: {e}")
        yield f"\n\nError: {e}"
        raise

    response = "".join(chunks)
    logger.info(
        f"[CHAT] {turn.conversation_id}: response completed "
        f"({len(response)} chars): {response[:100]!r}"
    )


@router.post("")
async def chat(request: Request):
    """
    Answer the last message of the conversation as a plain-text stream.

    The reply may contain the message separator between segments meant to be
    shown as separate chat bubbles.
    """
    logger.info("[CHAT] Chat request received")

    try:
        messages = await read_chat_messages(request)
    except ValueError as e:
        logger.warning(f"[CHAT] Invalid request: {e}")
        return error_response(400, str(e))

    credential_error = llm_service.get_missing_credential_error()
    if credential_error:
        logger.error(f"[CHAT] API key validation failed: {credential_error}")
        return error_response(500, credential_error)

    try:
        turn = await chat_service.prepare_turn(messages)
        head = await first_chunk(turn.text_stream)
    except CompletionProviderError as e:
        return error_response(500, str(e))
    except Exception as e:
        logger.exception("[CHAT] Error processing chat request")
        return error_response(500, str(e) or "Internal server error")

    return StreamingResponse(
        deliver_stream(turn, head),
        media_type="text/plain",
        headers=STREAM_HEADERS,
    )


@router.post("/message")
async def chat_message(request: Request):
    """Non-streaming variant: the full reply plus its display parts."""
    try:
        messages = await read_chat_messages(request)
    except ValueError as e:
        return error_response(400, str(e))

    credential_error = llm_service.get_missing_credential_error()
    if credential_error:
        return error_response(500, credential_error)

    try:
        result = await chat_service.complete(messages)
    except CompletionProviderError as e:
        return error_response(500, str(e))

    return {
        "success": True,
        "data": {
            "conversationId": result["conversation_id"],
            "content": result["content"],
            "parts": result["parts"],
        },
    }


@router.get("/conversations/{conversation_id}")
async def get_conversation(conversation_id: str, limit: Optional[int] = Query(default=None, ge=1)):
    """Stored turns of a conversation, oldest first."""
    last_update = chat_service.memory.last_update_time(conversation_id)
    if last_update is None:
        return error_response(404, "Conversation not found")

    messages = chat_service.get_history(conversation_id, limit)
    return {
        "success": True,
        "data": {
            "conversationId": conversation_id,
            "messages": [m.to_api_dict() for m in messages],
            "lastUpdateTime": last_update.isoformat(),
        },
    }


@router.delete("/conversations/{conversation_id}")
async def clear_conversation(conversation_id: str):
    """Forget a conversation's stored turns."""
    if not chat_service.clear_history(conversation_id):
        return error_response(404, "Conversation not found")
    return {"success": True, "data": {"conversationId": conversation_id, "cleared": True}}
