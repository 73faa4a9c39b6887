"""Message API routes — one route per query/mutation.

Learn: Routes translate HTTP to service calls and service errors to HTTP
responses. The service layer owns validation, persistence and publishing.

    messages                          GET    /messages
    postMessage(user, content, pid?)  POST   /messages
    updateMessage(id, user, content)  PUT    /messages/{id}
    deleteMessage(id)                 DELETE /messages/{id}
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from msgboard.db.engine import get_db
from msgboard.errors import NotFoundError, StoreError, ValidationError
from msgboard.schemas.message import MessageCreate, MessageRead, MessageUpdate
from msgboard.services.message_service import MessageService
from msgboard.services.query_service import MessageQueryService

router = APIRouter()


def _svc(request: Request, db: AsyncSession = Depends(get_db)) -> MessageService:
    return MessageService(db, request.app.state.bus)


def _query_svc(db: AsyncSession = Depends(get_db)) -> MessageQueryService:
    return MessageQueryService(db)


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ValidationError):
        return HTTPException(status_code=422, detail=str(e))
    return HTTPException(status_code=503, detail="Message store unavailable")


@router.get("/messages", response_model=list[MessageRead])
async def list_messages(svc: MessageQueryService = Depends(_query_svc)):
    try:
        return await svc.list_messages()
    except StoreError as e:
        raise _http_error(e)


@router.post("/messages", response_model=MessageRead, status_code=201)
async def post_message(body: MessageCreate, svc: MessageService = Depends(_svc)):
    try:
        return await svc.post_message(
            user=body.user, content=body.content, parent_id=body.parent_id
        )
    except (ValidationError, StoreError) as e:
        raise _http_error(e)


@router.put("/messages/{message_id}", response_model=MessageRead)
async def update_message(
    message_id: str,
    body: MessageUpdate,
    svc: MessageService = Depends(_svc),
):
    try:
        return await svc.update_message(message_id, user=body.user, content=body.content)
    except (ValidationError, NotFoundError, StoreError) as e:
        raise _http_error(e)


@router.delete("/messages/{message_id}", response_model=MessageRead)
async def delete_message(message_id: str, svc: MessageService = Depends(_svc)):
    """Delete a message and return its final state."""
    try:
        return await svc.delete_message(message_id)
    except (NotFoundError, StoreError) as e:
        raise _http_error(e)
