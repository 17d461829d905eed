"""
Connection API endpoints - requests, connections and message counters
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from crewmate.core.db import get_db
from crewmate.core.dependencies import get_current_user_id
from crewmate.schemas.base import Envelope, Message
from crewmate.schemas.connection import (
    BlockCreate,
    BlockRead,
    ConnectionRead,
    ConnectionRequestCreate,
    ConnectionRequestRead,
    MessageCreate,
    PendingRequests,
)
from crewmate.services.connection_service import ConnectionService

router = APIRouter(prefix="/connections", tags=["connections"])


@router.post("/requests", response_model=Envelope[ConnectionRequestRead], status_code=status.HTTP_201_CREATED)
async def send_connection_request(
    request_data: ConnectionRequestCreate,
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    """
    Ask another crew member to connect

    409 if a request is already pending in either direction or the users are connected.
    """
    request = await ConnectionService(db).send_connection_request(
        current_user_id, request_data.to_user_id, request_data.message
    )
    return Envelope(status="ok", data=ConnectionRequestRead.model_validate(request))


@router.get("/requests", response_model=Envelope[PendingRequests])
async def list_pending_requests(
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    incoming, outgoing = await ConnectionService(db).list_pending_requests(current_user_id)
    return Envelope(
        status="ok",
        data=PendingRequests(
            incoming=[ConnectionRequestRead.model_validate(r) for r in incoming],
            outgoing=[ConnectionRequestRead.model_validate(r) for r in outgoing],
        ),
    )


@router.post("/requests/{request_id}/accept", response_model=Envelope[ConnectionRead])
async def accept_connection_request(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    """Accept a request addressed to the caller; accepting twice returns the same connection"""
    connection = await ConnectionService(db).accept_connection_request(request_id, current_user_id)
    return Envelope(status="ok", data=ConnectionRead.from_model(connection))


@router.post("/requests/{request_id}/reject", response_model=Envelope[ConnectionRequestRead])
async def reject_connection_request(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    request = await ConnectionService(db).reject_connection_request(request_id, current_user_id)
    return Envelope(status="ok", data=ConnectionRequestRead.model_validate(request))


@router.delete("/requests/{request_id}", response_model=Envelope[Message])
async def cancel_connection_request(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    await ConnectionService(db).cancel_connection_request(request_id, current_user_id)
    return Envelope(status="ok", data=Message(message="Connection request withdrawn"))


@router.get("", response_model=Envelope[list[ConnectionRead]])
async def list_connections(
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    connections = await ConnectionService(db).list_connections(current_user_id)
    return Envelope(status="ok", data=[ConnectionRead.from_model(c) for c in connections])


@router.post("/blocks", response_model=Envelope[BlockRead], status_code=status.HTTP_201_CREATED)
async def block_user(
    block: BlockCreate,
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    """
    Block a crew member

    Removes any connection or pending request between the pair and hides
    each from the other's crew searches.
    """
    created = await ConnectionService(db).block_user(current_user_id, block.user_id)
    return Envelope(status="ok", data=BlockRead.model_validate(created))


@router.get("/blocks", response_model=Envelope[list[BlockRead]])
async def list_blocked(
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    blocks = await ConnectionService(db).list_blocked(current_user_id)
    return Envelope(status="ok", data=[BlockRead.model_validate(b) for b in blocks])


@router.delete("/blocks/{user_id}", response_model=Envelope[Message])
async def unblock_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    await ConnectionService(db).unblock_user(current_user_id, user_id)
    return Envelope(status="ok", data=Message(message="User unblocked"))


@router.delete("/{other_user_id}", response_model=Envelope[Message])
async def remove_connection(
    other_user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    await ConnectionService(db).remove_connection(current_user_id, other_user_id)
    return Envelope(status="ok", data=Message(message="Connection removed"))


@router.post("/{connection_id}/messages", response_model=Envelope[ConnectionRead])
async def record_message(
    connection_id: int,
    message: MessageCreate,
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    """Record a message from the caller; bumps the other member's unread counter"""
    connection = await ConnectionService(db).record_message(connection_id, current_user_id, message.text)
    return Envelope(status="ok", data=ConnectionRead.from_model(connection))


@router.post("/{connection_id}/read", response_model=Envelope[ConnectionRead])
async def mark_conversation_read(
    connection_id: int,
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    connection = await ConnectionService(db).mark_conversation_read(connection_id, current_user_id)
    return Envelope(status="ok", data=ConnectionRead.from_model(connection))
