"""
Broadcast hub: fan-out of session events to connected subscribers.

A subscriber wraps one push channel (an SSE stream in the HTTP server).
Delivery never blocks: channels buffer events and refuse them once full or
closed, which counts as a failed delivery for that subscriber only.
"""
from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Protocol

from sandterm.exceptions import ChannelClosedError
from sandterm.models import EventType, SessionEvent, SessionStatus, TerminalSession, now_ms
from sandterm.terminal.registry import SessionRegistry

logger = logging.getLogger(__name__)


class SubscriberChannel(Protocol):
    """Push channel a subscriber receives SSE frames on."""

    @property
    def closed(self) -> bool: ...

    def send(self, frame: str) -> None:
        """Queue a frame. Raises ChannelClosedError if closed or full."""
        ...

    def close(self) -> None: ...

    def add_close_callback(self, callback: Callable[[], None]) -> None: ...


@dataclass
class Subscriber:
    client_id: str
    session_id: str
    channel: SubscriberChannel
    connected_at: float = field(default_factory=time.time)
    last_heartbeat_at: float = field(default_factory=time.time)

    def deliver(self, event: SessionEvent) -> None:
        self.channel.send(event.to_sse())


class BroadcastHub:
    """Tracks subscribers per session and delivers events to them."""

    def __init__(self, registry: SessionRegistry) -> None:
        self._registry = registry
        self._subscribers: Dict[str, List[Subscriber]] = {}
        registry.add_destroy_listener(self.close_session)

    def subscriber_count(self, session_id: str) -> int:
        return len(self._subscribers.get(session_id, ()))

    @property
    def connected_clients(self) -> int:
        return sum(len(subs) for subs in self._subscribers.values())

    def register_subscriber(
        self, session_id: str, channel: SubscriberChannel, client_id: Optional[str] = None
    ) -> Subscriber:
        """
        Attach a channel to a session's event stream.

        Raises:
            SessionNotFoundError: Unknown session.
            SessionDestroyedError: Session is being destroyed.
        """
        session = self._registry.get_session(session_id)

        subscriber = Subscriber(
            client_id=client_id or str(uuid.uuid4()),
            session_id=session_id,
            channel=channel,
        )
        self._subscribers.setdefault(session_id, []).append(subscriber)
        session.status = SessionStatus.ACTIVE
        session.touch()

        channel.add_close_callback(
            lambda: self.unregister_subscriber(session_id, subscriber.client_id)
        )

        self._deliver(
            subscriber,
            SessionEvent(
                type=EventType.CONNECTED,
                data={
                    "session_id": session_id,
                    "client_id": subscriber.client_id,
                    "sandbox_id": session.sandbox_id,
                },
            ),
        )

        logger.info(
            "Client subscribed: session_id=%s client_id=%s subscribers=%d",
            session_id,
            subscriber.client_id,
            self.subscriber_count(session_id),
        )
        return subscriber

    def unregister_subscriber(self, session_id: str, client_id: str) -> None:
        subs = self._subscribers.get(session_id)
        if not subs:
            return
        remaining = [s for s in subs if s.client_id != client_id]
        if len(remaining) == len(subs):
            return

        if remaining:
            self._subscribers[session_id] = remaining
        else:
            del self._subscribers[session_id]
            session = self._registry.peek(session_id)
            if session is not None and not session.is_destroyed and session.running_commands == 0:
                session.status = SessionStatus.IDLE

        logger.info(
            "Client unsubscribed: session_id=%s client_id=%s remaining=%d",
            session_id,
            client_id,
            len(remaining),
        )

    def broadcast(self, session_id: str, event: SessionEvent) -> int:
        """
        Deliver an event to every subscriber of a session.

        Returns the number of successful deliveries; zero subscribers is not
        an error.
        """
        delivered = 0
        for subscriber in list(self._subscribers.get(session_id, ())):
            if self._deliver(subscriber, event):
                delivered += 1
        return delivered

    def send_heartbeat(self) -> None:
        """Send a heartbeat to every subscriber of every session."""
        event_time = now_ms()
        for session_id, subs in list(self._subscribers.items()):
            for subscriber in list(subs):
                try:
                    subscriber.deliver(
                        SessionEvent(type=EventType.HEARTBEAT, data={"timestamp": event_time})
                    )
                    subscriber.last_heartbeat_at = time.time()
                except Exception as e:
                    logger.debug(
                        "Heartbeat failed for client %s on session %s: %s",
                        subscriber.client_id,
                        session_id,
                        e,
                    )

    async def close_session(self, session: TerminalSession) -> None:
        """Tell every subscriber the session is gone, then close their channels."""
        subs = self._subscribers.pop(session.session_id, [])
        event = SessionEvent(
            type=EventType.SESSION_DESTROYED,
            data={"session_id": session.session_id, "message": "Session has been destroyed"},
        )
        for subscriber in subs:
            self._deliver(subscriber, event)
            try:
                subscriber.channel.close()
            except Exception as e:
                logger.error(
                    "Failed to close channel of client %s on session %s: %s",
                    subscriber.client_id,
                    session.session_id,
                    e,
                )
        if subs:
            logger.info(
                "Closed %d subscriber(s) of session %s", len(subs), session.session_id
            )

    def _deliver(self, subscriber: Subscriber, event: SessionEvent) -> bool:
        try:
            subscriber.deliver(event)
            return True
        except ChannelClosedError as e:
            logger.error(
                "Failed to send %s to client %s: %s", event.type.value, subscriber.client_id, e
            )
            return False
        except Exception as e:
            logger.exception(
                "Unexpected error sending %s to client %s: %s",
                event.type.value,
                subscriber.client_id,
                e,
            )
            return False
