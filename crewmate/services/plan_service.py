"""
Plan Service - plan creation, visibility tiers and attendee membership

Membership is the set of PlanAttendee rows for a plan. Joins insert a row on the
unique (plan_id, user_id) key and bump attendee_count with an atomic UPDATE in
the same transaction, so concurrent joiners never overwrite each other.
"""
import logging
from datetime import datetime, timedelta
from typing import AsyncIterator, Dict, Iterable, List, Optional, Set

from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from crewmate.config import get_settings
from crewmate.core.clock import as_utc, utcnow
from crewmate.core.db import store_operation
from crewmate.core.events import EventBus, get_event_bus, notifications_topic, plan_topic
from crewmate.core.exceptions import (
    ConflictError,
    ErrorCode,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from crewmate.models.layover import normalize_city
from crewmate.models.notification import NotificationType
from crewmate.models.plan import (
    Plan,
    PlanAttendee,
    PlanInvite,
    PlanMode,
    PlanStatus,
    PlanStop,
    PlanVisibility,
    RSVPStatus,
)
from crewmate.models.user import User
from crewmate.schemas.plan import (
    AttendeeRead,
    MultiStopPayload,
    PlanCreate,
    PlanDetail,
    PlanRead,
    PlanUpdate,
    StopInput,
    StopRead,
)
from crewmate.services.connection_service import ConnectionService
from crewmate.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class PlanService:
    """Plans, their itineraries and their attendees"""

    def __init__(
        self,
        db: AsyncSession,
        bus: Optional[EventBus] = None,
        connections: Optional[ConnectionService] = None,
    ):
        self.db = db
        self.bus = bus or get_event_bus()
        self.connections = connections or ConnectionService(db, self.bus)
        self.notifications = NotificationService(db, self.bus)
        self.settings = get_settings().plans

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def _check_title(self, title: Optional[str]) -> str:
        if title is None or not title.strip():
            raise ValidationError("Plan title must not be empty", details={"field": "title"})
        return title.strip()

    def _check_time(self, scheduled_time: datetime, field: str = "scheduled_time") -> datetime:
        scheduled_time = as_utc(scheduled_time)
        if self.settings.require_future_time and scheduled_time <= utcnow():
            raise ValidationError(
                "Scheduled time must be in the future",
                details={"field": field, "scheduled_time": scheduled_time.isoformat()},
            )
        return scheduled_time

    def _check_stop_count(self, count: int) -> None:
        if count < 2:
            raise ValidationError(
                "A multi-stop plan needs at least 2 stops",
                details={"stops": count},
                error_code=ErrorCode.INVALID_STOPS,
            )
        if count > self.settings.max_stops:
            raise ValidationError(
                f"A plan can have at most {self.settings.max_stops} stops",
                details={"stops": count},
                error_code=ErrorCode.INVALID_STOPS,
            )

    def _require_host(self, plan: Plan, acting_user_id: int, action: str) -> None:
        if plan.host_user_id != acting_user_id:
            raise PermissionDeniedError(
                f"Only the host can {action}",
                details={"plan_id": plan.id, "user_id": acting_user_id},
            )

    @staticmethod
    def _require_active(plan: Plan) -> None:
        if plan.status != PlanStatus.ACTIVE:
            raise ValidationError(
                f"Plan is {plan.status.value}",
                details={"plan_id": plan.id, "status": plan.status.value},
            )

    @staticmethod
    def _require_multi_stop(plan: Plan) -> None:
        if plan.mode != PlanMode.MULTI_STOP:
            raise ValidationError(
                "Stops can only be edited on a multi-stop plan",
                details={"plan_id": plan.id},
                error_code=ErrorCode.INVALID_STOPS,
            )

    def _publish_notifications(self, user_ids: Iterable[int]) -> None:
        for user_id in set(user_ids):
            self.bus.publish(notifications_topic(user_id), "notification_created")

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_plan(self, plan_id: int) -> Plan:
        plan = await self.db.get(Plan, plan_id)
        if plan is None:
            raise NotFoundError("Plan", plan_id)
        return plan

    async def list_stops(self, plan_id: int) -> List[PlanStop]:
        result = await self.db.execute(
            select(PlanStop).where(PlanStop.plan_id == plan_id).order_by(PlanStop.order, PlanStop.id)
        )
        return list(result.scalars().all())

    async def list_attendees(self, plan_id: int) -> List[PlanAttendee]:
        result = await self.db.execute(
            select(PlanAttendee).where(PlanAttendee.plan_id == plan_id).order_by(PlanAttendee.joined_at, PlanAttendee.id)
        )
        return list(result.scalars().all())

    async def attendee_ids(self, plan_id: int) -> Set[int]:
        result = await self.db.execute(select(PlanAttendee.user_id).where(PlanAttendee.plan_id == plan_id))
        return set(result.scalars().all())

    async def invited_user_ids(self, plan_id: int) -> Set[int]:
        result = await self.db.execute(select(PlanInvite.user_id).where(PlanInvite.plan_id == plan_id))
        return set(result.scalars().all())

    async def get_attendee(self, plan_id: int, user_id: int) -> Optional[PlanAttendee]:
        result = await self.db.execute(
            select(PlanAttendee).where(PlanAttendee.plan_id == plan_id, PlanAttendee.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_plan_detail(self, plan_id: int, viewer_id: int) -> PlanDetail:
        plan = await self.get_plan(plan_id)
        if not await self.can_view(plan, viewer_id):
            raise PermissionDeniedError("You cannot view this plan", details={"plan_id": plan_id})
        stops = await self.list_stops(plan_id)
        attendees = await self.list_attendees(plan_id)
        return PlanDetail(
            **PlanRead.model_validate(plan).model_dump(),
            stops=[StopRead.model_validate(s) for s in stops],
            attendees=[AttendeeRead.model_validate(a) for a in attendees],
        )

    # ------------------------------------------------------------------
    # Visibility
    # ------------------------------------------------------------------

    async def can_view(self, plan: Plan, viewer_id: int) -> bool:
        """
        Visibility tiers:
        - host and current attendees always
        - public: anyone
        - connections: users connected to the host
        - invite_only: users on the invite list
        """
        if viewer_id == plan.host_user_id:
            return True
        if plan.visibility == PlanVisibility.PUBLIC:
            return True
        if await self.get_attendee(plan.id, viewer_id) is not None:
            return True
        if plan.visibility == PlanVisibility.CONNECTIONS:
            return await self.connections.is_connected(plan.host_user_id, viewer_id)
        if plan.visibility == PlanVisibility.INVITE_ONLY:
            return viewer_id in await self.invited_user_ids(plan.id)
        return False

    async def list_visible_plans(self, viewer_id: int, city: str) -> List[Plan]:
        """Active plans in a city that the viewer can see, soonest first"""
        result = await self.db.execute(
            select(Plan)
            .where(Plan.city_key == normalize_city(city), Plan.status == PlanStatus.ACTIVE)
            .order_by(Plan.scheduled_time, Plan.id)
        )
        plans = list(result.scalars().all())
        if not plans:
            return []

        plan_ids = [p.id for p in plans]
        connected = await self.connections.connected_user_ids(viewer_id)
        invited = await self.db.execute(
            select(PlanInvite.plan_id).where(PlanInvite.user_id == viewer_id, PlanInvite.plan_id.in_(plan_ids))
        )
        attending = await self.db.execute(
            select(PlanAttendee.plan_id).where(PlanAttendee.user_id == viewer_id, PlanAttendee.plan_id.in_(plan_ids))
        )
        invited_ids = set(invited.scalars().all())
        attending_ids = set(attending.scalars().all())

        def visible(plan: Plan) -> bool:
            if plan.host_user_id == viewer_id or plan.id in attending_ids:
                return True
            if plan.visibility == PlanVisibility.PUBLIC:
                return True
            if plan.visibility == PlanVisibility.CONNECTIONS:
                return plan.host_user_id in connected
            return plan.id in invited_ids

        return [p for p in plans if visible(p)]

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    @store_operation("create_plan")
    async def create_plan(self, host_user_id: int, data: PlanCreate) -> PlanDetail:
        """
        Create a plan with its itinerary, host attendee and invite list in one transaction

        Raises:
            ValidationError: empty title, fewer than 2 stops, past scheduled time
            NotFoundError: unknown host or invitee
        """
        title = self._check_title(data.title)
        itinerary = data.itinerary

        if isinstance(itinerary, MultiStopPayload):
            self._check_stop_count(len(itinerary.stops))
            stop_times = [self._check_time(s.scheduled_time, f"stops[{i}].scheduled_time")
                          for i, s in enumerate(itinerary.stops)]
            scheduled_time = min(stop_times)
        else:
            scheduled_time = self._check_time(itinerary.scheduled_time)

        if await self.db.get(User, host_user_id) is None:
            raise NotFoundError("User", host_user_id)
        invitee_ids = [uid for uid in dict.fromkeys(data.invitee_ids) if uid != host_user_id]
        await self._require_users(invitee_ids)

        plan = Plan(
            host_user_id=host_user_id,
            title=title,
            description=data.description,
            city=data.city.strip(),
            city_key=normalize_city(data.city),
            area=data.area,
            visibility=data.visibility,
            mode=PlanMode(itinerary.mode),
            scheduled_time=scheduled_time,
            attendee_count=1,
            status=PlanStatus.ACTIVE,
        )
        if isinstance(itinerary, MultiStopPayload):
            self.db.add(plan)
            await self.db.flush()
            for order, (stop, stop_time) in enumerate(zip(itinerary.stops, stop_times)):
                self.db.add(PlanStop(
                    plan_id=plan.id,
                    spot_id=stop.spot_id,
                    spot_name=stop.spot_name,
                    scheduled_time=stop_time,
                    order=order,
                ))
        else:
            plan.spot_id = itinerary.spot_id
            plan.spot_name = itinerary.spot_name
            self.db.add(plan)
            await self.db.flush()

        self.db.add(PlanAttendee(
            plan_id=plan.id,
            user_id=host_user_id,
            rsvp_status=RSVPStatus.GOING,
            all_stops=True,
            stops_attending=None,
        ))
        for user_id in invitee_ids:
            self.db.add(PlanInvite(plan_id=plan.id, user_id=user_id))
            self.notifications.add_notification(
                user_id,
                NotificationType.PLAN_INVITE,
                {"plan_id": plan.id, "title": title, "host_user_id": host_user_id},
            )
        await self.db.commit()

        logger.info(
            f"Plan {plan.id} created by user {host_user_id} in {plan.city} "
            f"({plan.mode.value}, {plan.visibility.value}, {len(invitee_ids)} invite(s))"
        )
        self._publish_notifications(invitee_ids)
        return await self.get_plan_detail(plan.id, host_user_id)

    async def _require_users(self, user_ids: Iterable[int]) -> None:
        user_ids = set(user_ids)
        if not user_ids:
            return
        result = await self.db.execute(select(User.id).where(User.id.in_(user_ids)))
        missing = user_ids - set(result.scalars().all())
        if missing:
            raise NotFoundError("User", min(missing))

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    async def _resolve_stops(self, plan: Plan, stops_attending: Optional[List[int]]):
        """(all_stops, stops_attending) for a join or RSVP change"""
        if stops_attending is None:
            return True, None
        if plan.mode != PlanMode.MULTI_STOP:
            raise ValidationError(
                "stops_attending only applies to multi-stop plans",
                details={"plan_id": plan.id},
                error_code=ErrorCode.INVALID_STOPS,
            )
        stop_ids = [s.id for s in await self.list_stops(plan.id)]
        requested = set(stops_attending)
        unknown = requested - set(stop_ids)
        if not requested or unknown:
            raise ValidationError(
                "stops_attending must name stops of this plan",
                details={"plan_id": plan.id, "unknown_stop_ids": sorted(unknown)},
                error_code=ErrorCode.INVALID_STOPS,
            )
        if requested == set(stop_ids):
            return True, None
        return False, [sid for sid in stop_ids if sid in requested]

    @store_operation("join_plan")
    async def join_plan(
        self,
        plan_id: int,
        user_id: int,
        rsvp_status: RSVPStatus = RSVPStatus.GOING,
        stops_attending: Optional[List[int]] = None,
    ) -> PlanAttendee:
        """
        Add the user to the plan's attendees. Joining twice is a no-op.

        Raises:
            NotFoundError: unknown plan
            PermissionDeniedError: the user cannot view the plan
            ValidationError: plan not active, or stops not part of this plan
        """
        plan = await self.get_plan(plan_id)
        if not await self.can_view(plan, user_id):
            raise PermissionDeniedError(
                "You cannot join this plan",
                details={"plan_id": plan_id, "visibility": plan.visibility.value},
            )
        self._require_active(plan)

        existing = await self.get_attendee(plan_id, user_id)
        if existing is not None:
            return existing

        all_stops, stops = await self._resolve_stops(plan, stops_attending)
        host_user_id = plan.host_user_id
        attendee = PlanAttendee(
            plan_id=plan_id,
            user_id=user_id,
            rsvp_status=rsvp_status,
            all_stops=all_stops,
            stops_attending=stops,
        )
        self.db.add(attendee)
        try:
            await self.db.flush()
        except IntegrityError:
            # A concurrent join by the same user landed first
            await self.db.rollback()
            existing = await self.get_attendee(plan_id, user_id)
            if existing is None:
                raise
            return existing

        await self.db.execute(
            update(Plan)
            .where(Plan.id == plan_id)
            .values(attendee_count=Plan.attendee_count + 1)
            .execution_options(synchronize_session=False)
        )
        self.notifications.add_notification(
            host_user_id,
            NotificationType.NEW_JOINER,
            {"plan_id": plan_id, "user_id": user_id, "rsvp_status": rsvp_status.value},
        )
        await self.db.commit()
        await self.db.refresh(plan)

        logger.info(f"User {user_id} joined plan {plan_id} ({plan.attendee_count} attendee(s))")
        self.bus.publish(plan_topic(plan_id), "attendee_joined", user_id=user_id)
        self._publish_notifications([host_user_id])
        return attendee

    @store_operation("leave_plan")
    async def leave_plan(self, plan_id: int, user_id: int) -> bool:
        """
        Remove the user from the plan's attendees

        Returns:
            True if the user was an attendee; leaving twice is a no-op

        Raises:
            NotFoundError: unknown plan
            PermissionDeniedError: the host cannot leave their own plan
        """
        plan = await self.get_plan(plan_id)
        if user_id == plan.host_user_id:
            raise PermissionDeniedError(
                "The host cannot leave; cancel the plan instead",
                details={"plan_id": plan_id},
            )

        result = await self.db.execute(
            delete(PlanAttendee).where(PlanAttendee.plan_id == plan_id, PlanAttendee.user_id == user_id)
        )
        if not result.rowcount:
            await self.db.rollback()
            return False

        await self.db.execute(
            update(Plan)
            .where(Plan.id == plan_id)
            .values(attendee_count=Plan.attendee_count - 1)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        await self.db.refresh(plan)

        logger.info(f"User {user_id} left plan {plan_id} ({plan.attendee_count} attendee(s))")
        self.bus.publish(plan_topic(plan_id), "attendee_left", user_id=user_id)
        return True

    @store_operation("update_rsvp")
    async def update_rsvp(
        self,
        plan_id: int,
        user_id: int,
        rsvp_status: RSVPStatus,
        stops_attending: Optional[List[int]] = None,
    ) -> PlanAttendee:
        plan = await self.get_plan(plan_id)
        self._require_active(plan)
        attendee = await self.get_attendee(plan_id, user_id)
        if attendee is None:
            raise NotFoundError("PlanAttendee", f"{plan_id}:{user_id}")

        # Omitted stops_attending keeps the current selection
        if stops_attending is not None:
            attendee.all_stops, attendee.stops_attending = await self._resolve_stops(plan, stops_attending)
        attendee.rsvp_status = rsvp_status
        await self.db.commit()

        self.bus.publish(plan_topic(plan_id), "rsvp_changed", user_id=user_id, rsvp_status=rsvp_status.value)
        return attendee

    @store_operation("invite_users")
    async def invite_users(self, plan_id: int, acting_user_id: int, user_ids: Iterable[int]) -> List[int]:
        """
        Add users to the plan's invite list

        Returns:
            Ids that were newly invited; already-invited users are skipped
        """
        plan = await self.get_plan(plan_id)
        self._require_host(plan, acting_user_id, "invite users")
        self._require_active(plan)

        requested = [uid for uid in dict.fromkeys(user_ids) if uid != plan.host_user_id]
        await self._require_users(requested)
        already = await self.invited_user_ids(plan_id)
        new_ids = [uid for uid in requested if uid not in already]
        if not new_ids:
            return []

        for user_id in new_ids:
            self.db.add(PlanInvite(plan_id=plan_id, user_id=user_id))
            self.notifications.add_notification(
                user_id,
                NotificationType.PLAN_INVITE,
                {"plan_id": plan_id, "title": plan.title, "host_user_id": plan.host_user_id},
            )
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Invite list changed concurrently; retry", details={"plan_id": plan_id})

        logger.info(f"Plan {plan_id}: invited {len(new_ids)} user(s)")
        self._publish_notifications(new_ids)
        return new_ids

    # ------------------------------------------------------------------
    # Itinerary
    # ------------------------------------------------------------------

    @staticmethod
    def _sync_scheduled_time(plan: Plan, stops: List[PlanStop]) -> None:
        plan.scheduled_time = min(s.scheduled_time for s in stops)

    @store_operation("reorder_stops")
    async def reorder_stops(self, plan_id: int, acting_user_id: int, stop_ids: List[int]) -> List[PlanStop]:
        """
        Replace the itinerary order; stop_ids must be a permutation of the current stops

        Raises:
            PermissionDeniedError: caller is not the host
            ValidationError: not a permutation, or not a multi-stop plan
        """
        plan = await self.get_plan(plan_id)
        self._require_host(plan, acting_user_id, "reorder stops")
        self._require_multi_stop(plan)
        self._require_active(plan)

        stops = await self.list_stops(plan_id)
        by_id = {s.id: s for s in stops}
        if len(stop_ids) != len(stops) or set(stop_ids) != set(by_id):
            raise ValidationError(
                "Stop order must list every stop of the plan exactly once",
                details={"plan_id": plan_id, "expected": sorted(by_id), "received": list(stop_ids)},
                error_code=ErrorCode.INVALID_STOPS,
            )

        ordered = [by_id[sid] for sid in stop_ids]
        for order, stop in enumerate(ordered):
            stop.order = order
        self._sync_scheduled_time(plan, ordered)
        await self.db.commit()

        self.bus.publish(plan_topic(plan_id), "stops_reordered", stop_ids=list(stop_ids))
        return ordered

    @store_operation("remove_stop")
    async def remove_stop(self, plan_id: int, acting_user_id: int, stop_id: int) -> List[PlanStop]:
        """
        Delete a stop and renumber the rest 0..n-1.
        The stop is dropped from attendees' stops_attending.

        Raises:
            PermissionDeniedError: caller is not the host
            NotFoundError: stop is not part of this plan
            ValidationError: fewer than 2 stops would remain
        """
        plan = await self.get_plan(plan_id)
        self._require_host(plan, acting_user_id, "remove stops")
        self._require_multi_stop(plan)
        self._require_active(plan)

        stops = await self.list_stops(plan_id)
        target = next((s for s in stops if s.id == stop_id), None)
        if target is None:
            raise NotFoundError("PlanStop", stop_id)
        remaining = [s for s in stops if s.id != stop_id]
        if len(remaining) < 2:
            raise ValidationError(
                "A multi-stop plan needs at least 2 stops",
                details={"plan_id": plan_id, "stops": len(remaining)},
                error_code=ErrorCode.INVALID_STOPS,
            )

        await self.db.delete(target)
        for order, stop in enumerate(remaining):
            stop.order = order
        self._sync_scheduled_time(plan, remaining)

        for attendee in await self.list_attendees(plan_id):
            if attendee.stops_attending and stop_id in attendee.stops_attending:
                attendee.stops_attending = [sid for sid in attendee.stops_attending if sid != stop_id]
        await self.db.commit()

        self.bus.publish(plan_topic(plan_id), "stop_removed", stop_id=stop_id)
        return remaining

    @store_operation("add_stop")
    async def add_stop(self, plan_id: int, acting_user_id: int, stop: StopInput) -> PlanStop:
        """Append a stop at the end of the itinerary"""
        plan = await self.get_plan(plan_id)
        self._require_host(plan, acting_user_id, "add stops")
        self._require_multi_stop(plan)
        self._require_active(plan)

        stops = await self.list_stops(plan_id)
        self._check_stop_count(len(stops) + 1)
        new_stop = PlanStop(
            plan_id=plan_id,
            spot_id=stop.spot_id,
            spot_name=stop.spot_name,
            scheduled_time=self._check_time(stop.scheduled_time),
            order=len(stops),
        )
        self.db.add(new_stop)
        self._sync_scheduled_time(plan, stops + [new_stop])
        await self.db.commit()

        self.bus.publish(plan_topic(plan_id), "stop_added", stop_id=new_stop.id)
        return new_stop

    # ------------------------------------------------------------------
    # Host edits and lifecycle
    # ------------------------------------------------------------------

    async def _notify_attendees(self, plan: Plan, type: NotificationType, payload: Dict) -> List[int]:
        recipients = sorted(await self.attendee_ids(plan.id) - {plan.host_user_id})
        for user_id in recipients:
            self.notifications.add_notification(user_id, type, payload)
        return recipients

    @store_operation("update_plan")
    async def update_plan(self, plan_id: int, acting_user_id: int, data: PlanUpdate) -> Plan:
        """Host edits; attendees are notified of the changed fields"""
        plan = await self.get_plan(plan_id)
        self._require_host(plan, acting_user_id, "edit this plan")
        self._require_active(plan)

        changes = data.model_dump(exclude_unset=True)
        if "title" in changes:
            changes["title"] = self._check_title(changes["title"])
        if changes.get("visibility") is None:
            changes.pop("visibility", None)
        if "scheduled_time" in changes:
            if plan.mode != PlanMode.SINGLE:
                raise ValidationError(
                    "Multi-stop plans are rescheduled through their stops",
                    details={"plan_id": plan_id},
                    error_code=ErrorCode.INVALID_STOPS,
                )
            if changes["scheduled_time"] is None:
                changes.pop("scheduled_time")
            else:
                changes["scheduled_time"] = self._check_time(changes["scheduled_time"])

        changed_fields = sorted(f for f, v in changes.items() if getattr(plan, f) != v)
        if not changed_fields:
            return plan
        for field in changed_fields:
            setattr(plan, field, changes[field])

        recipients = await self._notify_attendees(
            plan,
            NotificationType.PLAN_UPDATED,
            {"plan_id": plan_id, "title": plan.title, "fields": changed_fields},
        )
        await self.db.commit()

        logger.info(f"Plan {plan_id} updated: {', '.join(changed_fields)}")
        self.bus.publish(plan_topic(plan_id), "plan_updated", fields=changed_fields)
        self._publish_notifications(recipients)
        return plan

    @store_operation("cancel_plan")
    async def cancel_plan(self, plan_id: int, acting_user_id: int) -> Plan:
        """
        Cancel an active plan; canceling twice is a no-op

        Raises:
            PermissionDeniedError: caller is not the host
            ConflictError: the plan already completed
        """
        plan = await self.get_plan(plan_id)
        self._require_host(plan, acting_user_id, "cancel this plan")
        if plan.status == PlanStatus.CANCELED:
            return plan
        if plan.status == PlanStatus.COMPLETED:
            raise ConflictError("Plan already completed", details={"plan_id": plan_id})

        result = await self.db.execute(
            update(Plan)
            .where(Plan.id == plan_id, Plan.status == PlanStatus.ACTIVE)
            .values(status=PlanStatus.CANCELED)
            .execution_options(synchronize_session=False)
        )
        transitioned = result.rowcount == 1
        recipients: List[int] = []
        if transitioned:
            recipients = await self._notify_attendees(
                plan,
                NotificationType.PLAN_CANCELED,
                {"plan_id": plan_id, "title": plan.title},
            )
        await self.db.commit()
        await self.db.refresh(plan)

        if transitioned:
            logger.info(f"Plan {plan_id} canceled by host {acting_user_id}")
            self.bus.publish(plan_topic(plan_id), "plan_canceled")
            self._publish_notifications(recipients)
        return plan

    @store_operation("archive_expired_plans")
    async def archive_expired_plans(self, now: Optional[datetime] = None) -> int:
        """
        Mark active plans completed once their time is past the grace period

        Returns:
            Number of plans archived
        """
        now = as_utc(now) or utcnow()
        cutoff = now - timedelta(hours=self.settings.archive_grace_hours)
        result = await self.db.execute(
            update(Plan)
            .where(Plan.status == PlanStatus.ACTIVE, Plan.scheduled_time < cutoff)
            .values(status=PlanStatus.COMPLETED, completed_at=now)
        )
        await self.db.commit()
        archived = result.rowcount or 0
        if archived:
            logger.info(f"Archived {archived} expired plan(s)")
        return archived


async def watch_plan(
    session_factory: async_sessionmaker,
    plan_id: int,
    viewer_id: int,
    bus: Optional[EventBus] = None,
) -> AsyncIterator[PlanDetail]:
    """
    Live view of a plan.

    Yields the plan detail immediately, then again after every change to
    its attendees, stops or details. Visibility is re-checked on each
    snapshot, so a viewer who loses access gets PermissionDeniedError.
    """
    bus = bus or get_event_bus()
    subscription = bus.subscribe(plan_topic(plan_id))

    async def snapshot() -> PlanDetail:
        async with session_factory() as session:
            return await PlanService(session, bus).get_plan_detail(plan_id, viewer_id)

    try:
        yield await snapshot()
        async for _event in subscription:
            while subscription.pending():
                await subscription.next()
            yield await snapshot()
    finally:
        subscription.unsubscribe()
