"""
Connection Service - request state machine and the symmetric connection graph

none -> pending -> accepted (connected) | rejected (back to none)
"""
import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import select, update, delete, or_, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from crewmate.core.clock import utcnow
from crewmate.core.db import store_operation
from crewmate.core.events import EventBus, get_event_bus, connection_requests_topic, connections_topic
from crewmate.core.exceptions import ConflictError, NotFoundError, PermissionDeniedError
from crewmate.models.connection import Block, Connection, ConnectionRequest, RequestStatus, ordered_pair
from crewmate.models.user import User
from crewmate.schemas.crew import ConnectionState

logger = logging.getLogger(__name__)


def _involves(user_id: int):
    return or_(Connection.user_low_id == user_id, Connection.user_high_id == user_id)


class ConnectionService:
    """Connection requests and established connections"""

    def __init__(self, db: AsyncSession, bus: Optional[EventBus] = None):
        self.db = db
        self.bus = bus or get_event_bus()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_connection_between(self, a: int, b: int) -> Optional[Connection]:
        low, high = ordered_pair(a, b)
        result = await self.db.execute(
            select(Connection).where(Connection.user_low_id == low, Connection.user_high_id == high)
        )
        return result.scalar_one_or_none()

    async def is_connected(self, a: int, b: int) -> bool:
        if a == b:
            return False
        return await self.get_connection_between(a, b) is not None

    async def pending_outgoing(self, user_id: int) -> Set[int]:
        """Users this user has pending requests to"""
        result = await self.db.execute(
            select(ConnectionRequest.to_user_id).where(
                ConnectionRequest.from_user_id == user_id,
                ConnectionRequest.status == RequestStatus.PENDING,
            )
        )
        return set(result.scalars().all())

    async def pending_incoming(self, user_id: int) -> Set[int]:
        """Users with pending requests to this user"""
        result = await self.db.execute(
            select(ConnectionRequest.from_user_id).where(
                ConnectionRequest.to_user_id == user_id,
                ConnectionRequest.status == RequestStatus.PENDING,
            )
        )
        return set(result.scalars().all())

    async def connected_user_ids(self, user_id: int) -> Set[int]:
        result = await self.db.execute(
            select(Connection.user_low_id, Connection.user_high_id).where(_involves(user_id))
        )
        return {high if low == user_id else low for low, high in result.all()}

    async def list_connections(self, user_id: int) -> List[Connection]:
        result = await self.db.execute(
            select(Connection).where(_involves(user_id)).order_by(Connection.created_at.desc(), Connection.id.desc())
        )
        return list(result.scalars().all())

    async def list_pending_requests(self, user_id: int) -> Tuple[List[ConnectionRequest], List[ConnectionRequest]]:
        """(incoming, outgoing) pending requests, newest first"""
        result = await self.db.execute(
            select(ConnectionRequest)
            .where(
                ConnectionRequest.status == RequestStatus.PENDING,
                or_(ConnectionRequest.to_user_id == user_id, ConnectionRequest.from_user_id == user_id),
            )
            .order_by(ConnectionRequest.created_at.desc(), ConnectionRequest.id.desc())
        )
        requests = result.scalars().all()
        incoming = [r for r in requests if r.to_user_id == user_id]
        outgoing = [r for r in requests if r.from_user_id == user_id]
        return incoming, outgoing

    async def connection_states(self, viewer_id: int, other_ids: Iterable[int]) -> Dict[int, ConnectionState]:
        """Relationship of each other user to the viewer, in three queries"""
        others = set(other_ids) - {viewer_id}
        if not others:
            return {}
        connected = await self.connected_user_ids(viewer_id)
        outgoing = await self.pending_outgoing(viewer_id)
        incoming = await self.pending_incoming(viewer_id)

        states = {}
        for other in others:
            if other in connected:
                states[other] = ConnectionState.CONNECTED
            elif other in outgoing:
                states[other] = ConnectionState.PENDING_OUTGOING
            elif other in incoming:
                states[other] = ConnectionState.PENDING_INCOMING
            else:
                states[other] = ConnectionState.NONE
        return states

    async def connection_status(self, viewer_id: int, other_id: int) -> ConnectionState:
        states = await self.connection_states(viewer_id, [other_id])
        return states.get(other_id, ConnectionState.NONE)

    async def get_request(self, request_id: int) -> ConnectionRequest:
        request = await self.db.get(ConnectionRequest, request_id)
        if request is None:
            raise NotFoundError("ConnectionRequest", request_id)
        return request

    async def get_connection(self, connection_id: int, user_id: int) -> Connection:
        """A connection the user is part of"""
        connection = await self.db.get(Connection, connection_id)
        if connection is None:
            raise NotFoundError("Connection", connection_id)
        if user_id not in connection.user_ids:
            raise PermissionDeniedError(
                "Not a member of this connection",
                details={"connection_id": connection_id},
            )
        return connection

    # ------------------------------------------------------------------
    # Request state machine
    # ------------------------------------------------------------------

    @store_operation("send_connection_request")
    async def send_connection_request(
        self,
        from_user_id: int,
        to_user_id: int,
        message: Optional[str] = None,
    ) -> ConnectionRequest:
        """
        Create a pending request

        Raises:
            ConflictError: self-request, already connected, or a pending request
                exists in either direction
            NotFoundError: unknown user
        """
        if from_user_id == to_user_id:
            raise ConflictError("Cannot send a connection request to yourself")
        for user_id in (from_user_id, to_user_id):
            if await self.db.get(User, user_id) is None:
                raise NotFoundError("User", user_id)
        if await self.is_blocked(from_user_id, to_user_id):
            raise ConflictError(
                "Connection requests between these users are blocked",
                details={"from_user_id": from_user_id, "to_user_id": to_user_id},
            )
        if await self.is_connected(from_user_id, to_user_id):
            raise ConflictError(
                "Users are already connected",
                details={"from_user_id": from_user_id, "to_user_id": to_user_id},
            )

        low, high = ordered_pair(from_user_id, to_user_id)
        existing = await self.db.execute(
            select(ConnectionRequest.id).where(
                ConnectionRequest.pair_low_id == low,
                ConnectionRequest.pair_high_id == high,
                ConnectionRequest.status == RequestStatus.PENDING,
            )
        )
        if existing.first() is not None:
            raise ConflictError(
                "A connection request between these users is already pending",
                details={"from_user_id": from_user_id, "to_user_id": to_user_id},
            )

        request = ConnectionRequest(
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            pair_low_id=low,
            pair_high_id=high,
            status=RequestStatus.PENDING,
            message=message,
        )
        self.db.add(request)
        try:
            await self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent request for the same pair
            await self.db.rollback()
            raise ConflictError(
                "A connection request between these users is already pending",
                details={"from_user_id": from_user_id, "to_user_id": to_user_id},
            )

        logger.info(f"Connection request {request.id}: {from_user_id} -> {to_user_id}")
        self.bus.publish(connection_requests_topic(to_user_id), "request_received", request_id=request.id)
        self.bus.publish(connection_requests_topic(from_user_id), "request_sent", request_id=request.id)
        return request

    @store_operation("accept_connection_request")
    async def accept_connection_request(
        self,
        request_id: int,
        acting_user_id: Optional[int] = None,
    ) -> Connection:
        """
        Accept a pending request and create the connection.
        Accepting an already-accepted request returns the existing connection.

        Raises:
            NotFoundError: unknown request
            PermissionDeniedError: acting user is not the recipient
            ConflictError: request was rejected, or the pair disconnected since acceptance
        """
        request = await self.get_request(request_id)
        self._check_recipient(request, acting_user_id)
        from_user_id, to_user_id = request.from_user_id, request.to_user_id

        if request.status == RequestStatus.REJECTED:
            raise ConflictError("Connection request was rejected", details={"request_id": request_id})

        if request.status == RequestStatus.ACCEPTED:
            connection = await self.get_connection_between(from_user_id, to_user_id)
            if connection is None:
                raise ConflictError(
                    "Connection was removed after this request was accepted",
                    details={"request_id": request_id},
                )
            return connection

        result = await self.db.execute(
            update(ConnectionRequest)
            .where(ConnectionRequest.id == request_id, ConnectionRequest.status == RequestStatus.PENDING)
            .values(status=RequestStatus.ACCEPTED, responded_at=utcnow())
        )
        transitioned = result.rowcount == 1

        connection = await self.get_connection_between(from_user_id, to_user_id)
        if connection is None:
            low, high = ordered_pair(from_user_id, to_user_id)
            connection = Connection(user_low_id=low, user_high_id=high, unread_low=0, unread_high=0)
            self.db.add(connection)
        try:
            await self.db.commit()
        except IntegrityError:
            # A concurrent accept created the pair first
            await self.db.rollback()
            connection = await self.get_connection_between(from_user_id, to_user_id)
            if connection is None:
                raise
            return connection

        if transitioned:
            logger.info(f"Connection request {request_id} accepted; connection {connection.id}")
            for user_id in (from_user_id, to_user_id):
                self.bus.publish(connections_topic(user_id), "connection_created", connection_id=connection.id)
            self.bus.publish(connection_requests_topic(to_user_id), "request_accepted", request_id=request_id)
            self.bus.publish(connection_requests_topic(from_user_id), "request_accepted", request_id=request_id)
        return connection

    @store_operation("reject_connection_request")
    async def reject_connection_request(
        self,
        request_id: int,
        acting_user_id: Optional[int] = None,
    ) -> ConnectionRequest:
        """
        Reject a pending request; a later request from either side is allowed.
        Rejecting twice is a no-op.

        Raises:
            NotFoundError: unknown request
            PermissionDeniedError: acting user is not the recipient
            ConflictError: request was already accepted
        """
        request = await self.get_request(request_id)
        self._check_recipient(request, acting_user_id)

        if request.status == RequestStatus.REJECTED:
            return request
        if request.status == RequestStatus.ACCEPTED:
            raise ConflictError("Connection request was already accepted", details={"request_id": request_id})

        result = await self.db.execute(
            update(ConnectionRequest)
            .where(ConnectionRequest.id == request_id, ConnectionRequest.status == RequestStatus.PENDING)
            .values(status=RequestStatus.REJECTED, responded_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        await self.db.refresh(request)
        if result.rowcount != 1:
            # A concurrent accept or reject landed first
            if request.status == RequestStatus.ACCEPTED:
                raise ConflictError("Connection request was already accepted", details={"request_id": request_id})
            return request

        logger.info(f"Connection request {request_id} rejected")
        self.bus.publish(connection_requests_topic(request.to_user_id), "request_rejected", request_id=request_id)
        self.bus.publish(connection_requests_topic(request.from_user_id), "request_rejected", request_id=request_id)
        return request

    @store_operation("cancel_connection_request")
    async def cancel_connection_request(self, request_id: int, acting_user_id: int) -> None:
        """Sender withdraws a pending request"""
        request = await self.get_request(request_id)
        if request.from_user_id != acting_user_id:
            raise PermissionDeniedError(
                "Only the sender can withdraw a connection request",
                details={"request_id": request_id},
            )
        if request.status != RequestStatus.PENDING:
            raise ConflictError("Only pending requests can be withdrawn", details={"request_id": request_id})

        to_user_id = request.to_user_id
        await self.db.delete(request)
        await self.db.commit()
        self.bus.publish(connection_requests_topic(to_user_id), "request_withdrawn", request_id=request_id)
        self.bus.publish(connection_requests_topic(acting_user_id), "request_withdrawn", request_id=request_id)

    @store_operation("remove_connection")
    async def remove_connection(self, user_id: int, other_user_id: int) -> None:
        """Explicit unfriending by either party"""
        connection = await self.get_connection_between(user_id, other_user_id)
        if connection is None:
            raise NotFoundError("Connection", f"{user_id}:{other_user_id}")
        connection_id = connection.id
        await self.db.delete(connection)
        await self.db.commit()

        logger.info(f"Connection {connection_id} removed by user {user_id}")
        for member in (user_id, other_user_id):
            self.bus.publish(connections_topic(member), "connection_removed", connection_id=connection_id)

    # ------------------------------------------------------------------
    # Blocking
    # ------------------------------------------------------------------

    async def blocked_user_ids(self, user_id: int) -> Set[int]:
        """Users hidden from this user: blocked by them or blocking them"""
        result = await self.db.execute(
            select(Block.blocker_id, Block.blocked_id).where(
                or_(Block.blocker_id == user_id, Block.blocked_id == user_id)
            )
        )
        return {blocked if blocker == user_id else blocker for blocker, blocked in result.all()}

    async def is_blocked(self, a: int, b: int) -> bool:
        result = await self.db.execute(
            select(Block.id).where(
                or_(
                    and_(Block.blocker_id == a, Block.blocked_id == b),
                    and_(Block.blocker_id == b, Block.blocked_id == a),
                )
            )
        )
        return result.first() is not None

    async def list_blocked(self, user_id: int) -> List[Block]:
        """Users this user has blocked, newest first"""
        result = await self.db.execute(
            select(Block).where(Block.blocker_id == user_id).order_by(Block.created_at.desc(), Block.id.desc())
        )
        return list(result.scalars().all())

    @store_operation("block_user")
    async def block_user(self, user_id: int, other_user_id: int) -> Block:
        """
        Block another user. Removes any connection and pending requests
        between the pair. Blocking twice is a no-op.

        Raises:
            ConflictError: self-block
            NotFoundError: unknown user
        """
        if user_id == other_user_id:
            raise ConflictError("Cannot block yourself")
        if await self.db.get(User, other_user_id) is None:
            raise NotFoundError("User", other_user_id)

        existing = await self.db.execute(
            select(Block).where(Block.blocker_id == user_id, Block.blocked_id == other_user_id)
        )
        block = existing.scalar_one_or_none()
        if block is not None:
            return block

        low, high = ordered_pair(user_id, other_user_id)
        removed = await self.db.execute(
            delete(Connection).where(Connection.user_low_id == low, Connection.user_high_id == high)
        )
        withdrawn = await self.db.execute(
            delete(ConnectionRequest).where(
                ConnectionRequest.pair_low_id == low,
                ConnectionRequest.pair_high_id == high,
                ConnectionRequest.status == RequestStatus.PENDING,
            )
        )
        block = Block(blocker_id=user_id, blocked_id=other_user_id)
        self.db.add(block)
        try:
            await self.db.commit()
        except IntegrityError:
            # A concurrent block of the same user landed first
            await self.db.rollback()
            existing = await self.db.execute(
                select(Block).where(Block.blocker_id == user_id, Block.blocked_id == other_user_id)
            )
            return existing.scalar_one()

        logger.info(
            f"User {user_id} blocked user {other_user_id} "
            f"({removed.rowcount or 0} connection(s), {withdrawn.rowcount or 0} request(s) removed)"
        )
        for member in (user_id, other_user_id):
            if removed.rowcount:
                self.bus.publish(connections_topic(member), "connection_removed")
            if withdrawn.rowcount:
                self.bus.publish(connection_requests_topic(member), "request_withdrawn")
        return block

    @store_operation("unblock_user")
    async def unblock_user(self, user_id: int, other_user_id: int) -> None:
        result = await self.db.execute(
            delete(Block).where(Block.blocker_id == user_id, Block.blocked_id == other_user_id)
        )
        if not result.rowcount:
            await self.db.rollback()
            raise NotFoundError("Block", f"{user_id}:{other_user_id}")
        await self.db.commit()
        logger.info(f"User {user_id} unblocked user {other_user_id}")

    # ------------------------------------------------------------------
    # Per-connection message counters
    # ------------------------------------------------------------------

    @store_operation("record_message")
    async def record_message(self, connection_id: int, sender_id: int, text: str) -> Connection:
        """Bump the recipient's unread counter atomically"""
        connection = await self.get_connection(connection_id, sender_id)
        recipient_id = connection.other_user(sender_id)
        counter = connection.unread_column_for(recipient_id)

        await self.db.execute(
            update(Connection)
            .where(Connection.id == connection_id)
            .values({counter: counter + 1, Connection.last_message: text[:500], Connection.last_message_at: utcnow()})
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        await self.db.refresh(connection)

        self.bus.publish(connections_topic(recipient_id), "message_received", connection_id=connection_id)
        return connection

    @store_operation("mark_conversation_read")
    async def mark_conversation_read(self, connection_id: int, user_id: int) -> Connection:
        connection = await self.get_connection(connection_id, user_id)
        counter = connection.unread_column_for(user_id)

        await self.db.execute(
            update(Connection)
            .where(Connection.id == connection_id)
            .values({counter: 0})
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        await self.db.refresh(connection)

        self.bus.publish(connections_topic(user_id), "conversation_read", connection_id=connection_id)
        return connection

    @staticmethod
    def _check_recipient(request: ConnectionRequest, acting_user_id: Optional[int]) -> None:
        if acting_user_id is not None and acting_user_id != request.to_user_id:
            raise PermissionDeniedError(
                "Only the recipient can respond to a connection request",
                details={"request_id": request.id},
            )
