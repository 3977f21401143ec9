"""
Signaling Service for peer interview rooms
Relays WebRTC offer / answer / ICE candidate messages between the two participants
of a peer session over a per-room broadcast channel (topic "session:<id>").

Each subscriber owns a queue that its server-sent-events stream drains. Messages are
fanned out to every subscriber except the sender, in publish order, and are not
replayed to peers who subscribe later.
"""

import json
import queue
import logging
import threading
from typing import Dict, Optional

SIGNAL_TYPES = ('offer', 'answer', 'ice-candidate')

ICE_SERVERS = [
    {'urls': 'stun:stun.l.google.com:19302'},
    {'urls': 'stun:stun1.l.google.com:19302'},
]

# Negotiation phases
PHASE_IDLE = 'idle'
PHASE_OFFERED = 'offered'
PHASE_ANSWERED = 'answered'

_CLOSED = object()


class SignalRejected(Exception):
    """Raised when a publish or subscribe breaks the room rules"""

    def __init__(self, reason, status_code=400):
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code


class Subscription:
    """One participant's connection to a room"""

    def __init__(self, hub, room, user_id):
        self.hub = hub
        self.room = room
        self.user_id = user_id
        self.queue = queue.Queue()

    def deliver(self, message):
        self.queue.put(message)

    def end(self, message=None):
        if message is not None:
            self.queue.put(message)
        self.queue.put(_CLOSED)

    def events(self, keepalive_seconds=15.0):
        """
        Server-sent-events frames for this subscription.
        The first frame is sent immediately so the client knows it is listening;
        comment frames keep idle connections open. Leaving the generator
        (client disconnect or room close) unsubscribes.
        """
        ready = {'topic': self.room.topic, 'user_id': self.user_id, 'role': self.room.role_of(self.user_id)}
        try:
            yield f"retry: 3000\nevent: ready\ndata: {json.dumps(ready)}\n\n"
            while True:
                try:
                    item = self.queue.get(timeout=keepalive_seconds)
                except queue.Empty:
                    yield ": keepalive\n\n"
                    continue
                if item is _CLOSED:
                    break
                yield f"data: {json.dumps(item)}\n\n"
        finally:
            self.hub.unsubscribe(self)


class SignalingRoom:
    """Channel state for a single peer session"""

    def __init__(self, session_id, host_user_id, guest_user_id=None):
        self.session_id = session_id
        self.topic = f"session:{session_id}"
        self.host_user_id = host_user_id
        self.guest_user_id = guest_user_id
        self.phase = PHASE_IDLE
        self.closed = False
        self.subscribers: Dict[int, Subscription] = {}

    def role_of(self, user_id) -> Optional[str]:
        return participant_role(user_id, self.host_user_id, self.guest_user_id)

    def snapshot(self):
        return {
            'topic': self.topic,
            'phase': self.phase,
            'closed': self.closed,
            'connected': sorted(self.subscribers.keys()),
        }


def participant_role(user_id, host_user_id, guest_user_id=None) -> Optional[str]:
    if user_id == host_user_id:
        return 'host'
    if user_id is not None and user_id == guest_user_id:
        return 'guest'
    return None


class SignalingHub:
    """
    In-process registry of signaling rooms, safe to use from request threads.
    Rooms are keyed by session id and exist only while someone is subscribed.
    """

    def __init__(self):
        self._rooms: Dict[int, SignalingRoom] = {}
        self._lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def subscribe(self, session_id, user_id, host_user_id, guest_user_id=None) -> Subscription:
        """
        Attach a participant to the session's room, opening it if needed.
        A second subscription by the same user replaces the first one, whose
        stream ends. Other subscribers are told when a new participant arrives.
        """
        if participant_role(user_id, host_user_id, guest_user_id) is None:
            raise SignalRejected("You are not a participant of this session", 403)

        with self._lock:
            room = self._rooms.get(session_id)
            if room is None:
                room = SignalingRoom(session_id, host_user_id, guest_user_id)
                self._rooms[session_id] = room
            else:
                room.host_user_id = host_user_id
                room.guest_user_id = guest_user_id

            previous = room.subscribers.get(user_id)
            subscription = Subscription(self, room, user_id)
            room.subscribers[user_id] = subscription

            if previous is not None:
                previous.end()
            else:
                for other_id, other in room.subscribers.items():
                    if other_id != user_id:
                        other.deliver({'type': 'peer-joined', 'from': user_id})

        self.logger.info(f"User {user_id} subscribed to {room.topic}")
        return subscription

    def unsubscribe(self, subscription: Subscription):
        with self._lock:
            room = subscription.room
            if room.subscribers.get(subscription.user_id) is not subscription:
                return
            del room.subscribers[subscription.user_id]
            for other in room.subscribers.values():
                other.deliver({'type': 'peer-left', 'from': subscription.user_id})
            if not room.subscribers and self._rooms.get(room.session_id) is room:
                del self._rooms[room.session_id]

        self.logger.info(f"User {subscription.user_id} left {room.topic}")

    def publish(self, session_id, user_id, signal_type, data, host_user_id, guest_user_id=None) -> int:
        """
        Relay a negotiation message to the other participants

        Rules:
            - only 'offer', 'answer' and 'ice-candidate' are relayed
            - the host sends offers, the guest sends answers
            - the sender never receives its own message
            - nothing is queued for sessions nobody is listening to

        Returns:
            Number of subscribers the message was queued for
        """
        if signal_type not in SIGNAL_TYPES:
            raise SignalRejected(f"Unsupported signal type: {signal_type}", 400)

        role = participant_role(user_id, host_user_id, guest_user_id)
        if role is None:
            raise SignalRejected("You are not a participant of this session", 403)
        if signal_type == 'offer' and role != 'host':
            raise SignalRejected("Only the host can send an offer", 403)
        if signal_type == 'answer' and role != 'guest':
            raise SignalRejected("Only the guest can send an answer", 403)

        with self._lock:
            room = self._rooms.get(session_id)
            if room is None:
                self.logger.debug(f"session:{session_id}: {signal_type} from {user_id} has no listeners")
                return 0

            if signal_type == 'offer':
                room.phase = PHASE_OFFERED
            elif signal_type == 'answer':
                room.phase = PHASE_ANSWERED

            message = {'type': signal_type, 'data': data, 'from': user_id}
            delivered = 0
            for subscriber_id, subscriber in room.subscribers.items():
                if subscriber_id == user_id:
                    continue
                subscriber.deliver(message)
                delivered += 1

        self.logger.debug(f"{room.topic}: {signal_type} from {user_id} delivered to {delivered}")
        return delivered

    def close(self, session_id):
        """End every stream of a room; later subscribers get a fresh room"""
        with self._lock:
            room = self._rooms.pop(session_id, None)
            if room is None:
                return
            room.closed = True
            subscribers = list(room.subscribers.values())
            room.subscribers.clear()

        for subscription in subscribers:
            subscription.end({'type': 'closed'})
        self.logger.info(f"Closed signaling room {room.topic}")

    def state(self, session_id):
        with self._lock:
            room = self._rooms.get(session_id)
            if room is None:
                return {'topic': f"session:{session_id}", 'phase': PHASE_IDLE, 'closed': False, 'connected': []}
            return room.snapshot()


# One hub per process: the app runs as a single threaded worker (see main.py)
hub = SignalingHub()
