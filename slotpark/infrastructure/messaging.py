# File: slotpark/infrastructure/messaging.py
"""
Messaging Infrastructure for the Parking Facility Engine

This module publishes the facility's domain events to the outside world:
1. Message envelope - JSON-serializable wrapper around a domain event
2. Message Queue - publish/subscribe abstraction over a broker
3. Brokers - Redis Pub/Sub and an in-memory queue (for testing)

Publishing never happens while the facility lock is held; the application
service drains the facility events and hands them to a queue afterwards.
"""

from abc import ABC, abstractmethod
from typing import Optional, Dict, List, Any, Callable
from datetime import datetime
import logging
import json
import threading
from dataclasses import dataclass, asdict, field
from uuid import uuid4

import redis

from ..domain.models import DomainEvent


# ============================================================================
# MESSAGE ENVELOPE
# ============================================================================

@dataclass
class Message:
    """Domain event message as sent over a broker"""
    event_type: str
    data: Dict[str, Any] = field(default_factory=dict)
    message_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=datetime.now)
    source: Optional[str] = None

    @classmethod
    def from_event(cls, event: DomainEvent, source: Optional[str] = None) -> "Message":
        """Wrap a domain event; the message shares the event id and time"""
        return cls(
            event_type=event.event_type,
            data=event.payload(),
            message_id=event.event_id,
            timestamp=event.timestamp,
            source=source
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert message to dictionary"""
        data = asdict(self)
        data['timestamp'] = self.timestamp.isoformat()
        return data

    def to_json(self) -> str:
        """Convert message to JSON string"""
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        """Create message from dictionary"""
        data = dict(data)
        data['timestamp'] = datetime.fromisoformat(data['timestamp'])
        return cls(**data)

    @classmethod
    def from_json(cls, json_str: str) -> "Message":
        """Create message from JSON string"""
        return cls.from_dict(json.loads(json_str))


# ============================================================================
# MESSAGE QUEUE ABSTRACTION
# ============================================================================

class MessageQueue(ABC):
    """Abstract base class for message queues"""

    @abstractmethod
    def publish(self, topic: str, message: Message) -> bool:
        """Publish a message to a topic"""
        pass

    @abstractmethod
    def subscribe(self, topic: str, callback: Callable[[Message], None]) -> str:
        """Subscribe to messages from a topic, returns a subscription id"""
        pass

    @abstractmethod
    def unsubscribe(self, subscription_id: str) -> bool:
        """Unsubscribe from a topic"""
        pass

    def close(self) -> None:
        """Release broker resources"""
        pass


# ============================================================================
# IN-MEMORY MESSAGE QUEUE
# ============================================================================

class InMemoryMessageQueue(MessageQueue):
    """In-memory message queue, delivers synchronously on publish"""

    def __init__(self):
        self._subscriptions: Dict[str, str] = {}  # subscription_id -> topic
        self._callbacks: Dict[str, Callable[[Message], None]] = {}  # subscription_id -> callback
        self._messages: Dict[str, List[Message]] = {}
        self._lock = threading.Lock()
        self._logger = logging.getLogger(self.__class__.__name__)

    def publish(self, topic: str, message: Message) -> bool:
        """Store the message and notify subscribers"""
        with self._lock:
            self._messages.setdefault(topic, []).append(message)
            callbacks = [
                self._callbacks[sid] for sid, t in self._subscriptions.items() if t == topic
            ]

        for callback in callbacks:
            try:
                callback(message)
            except Exception as e:
                self._logger.error(f"Error in callback for topic {topic}: {e}")

        self._logger.debug(f"Published to {topic}: {message.message_id}")
        return True

    def subscribe(self, topic: str, callback: Callable[[Message], None]) -> str:
        subscription_id = str(uuid4())
        with self._lock:
            self._subscriptions[subscription_id] = topic
            self._callbacks[subscription_id] = callback

        self._logger.debug(f"Subscribed to {topic} with ID {subscription_id}")
        return subscription_id

    def unsubscribe(self, subscription_id: str) -> bool:
        with self._lock:
            if subscription_id not in self._subscriptions:
                return False
            del self._subscriptions[subscription_id]
            del self._callbacks[subscription_id]
        return True

    def get_messages(self, topic: str) -> List[Message]:
        """Get all messages published to a topic (for testing)"""
        with self._lock:
            return list(self._messages.get(topic, []))

    def clear(self) -> None:
        """Clear all messages and subscriptions (for testing)"""
        with self._lock:
            self._subscriptions.clear()
            self._callbacks.clear()
            self._messages.clear()


# ============================================================================
# REDIS MESSAGE QUEUE
# ============================================================================

class RedisMessageQueue(MessageQueue):
    """
    Redis-based message queue using Pub/Sub

    Callbacks run on a single listener thread, started by the first
    subscription. Subscription state is shared with that thread and guarded
    by _lock; callbacks are invoked outside it.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        client: Optional[redis.Redis] = None,
        **kwargs
    ):
        self.redis_url = redis_url
        self._logger = logging.getLogger(self.__class__.__name__)

        self.redis_client = client or redis.Redis.from_url(redis_url, **kwargs)
        self.pubsub = self.redis_client.pubsub()

        # topic -> {subscription_id: callback}
        self._topics: Dict[str, Dict[str, Callable[[Message], None]]] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def publish(self, topic: str, message: Message) -> bool:
        """
        Publish a message to a Redis channel
        Returns: True if at least one subscriber received it
        """
        try:
            receivers = self.redis_client.publish(topic, message.to_json())
        except redis.RedisError as e:
            self._logger.error(f"Redis publish to {topic} failed: {e}")
            return False

        self._logger.debug(f"Published {message.message_id} to {topic} ({receivers} receivers)")
        return receivers > 0

    def subscribe(self, topic: str, callback: Callable[[Message], None]) -> str:
        """Subscribe to a Redis channel"""
        subscription_id = str(uuid4())

        with self._lock:
            callbacks = self._topics.setdefault(topic, {})
            if not callbacks:
                self.pubsub.subscribe(topic)
            callbacks[subscription_id] = callback
            start = self._thread is None

        if start:
            self._start_listener()

        self._logger.debug(f"Subscribed to {topic} with ID {subscription_id}")
        return subscription_id

    def unsubscribe(self, subscription_id: str) -> bool:
        """Drop a subscription; the channel is left once it has no callbacks"""
        with self._lock:
            for topic, callbacks in self._topics.items():
                if subscription_id in callbacks:
                    del callbacks[subscription_id]
                    if not callbacks:
                        del self._topics[topic]
                        self.pubsub.unsubscribe(topic)
                        self._logger.debug(f"Unsubscribed from {topic}")
                    return True
        return False

    def _start_listener(self) -> None:
        """Start the Redis message listener in a separate thread"""
        self._thread = threading.Thread(target=self._listen, name="redis-listener", daemon=True)
        self._thread.start()
        self._logger.info("Started Redis message listener")

    def _listen(self) -> None:
        while not self._stop.is_set():
            try:
                message = self.pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            except redis.RedisError as e:
                self._logger.error(f"Redis listener error: {e}")
                self._stop.wait(1.0)
                continue
            if message and message['type'] == 'message':
                self._handle_message(message)

    def _handle_message(self, redis_message: Dict[str, Any]) -> None:
        """Decode an incoming Redis message and dispatch it to its callbacks"""
        topic = redis_message['channel']
        data = redis_message['data']
        if isinstance(topic, bytes):
            topic = topic.decode('utf-8')
        if isinstance(data, bytes):
            data = data.decode('utf-8')

        try:
            message = Message.from_json(data)
        except (ValueError, KeyError, TypeError) as e:
            self._logger.error(f"Discarding malformed message on {topic}: {e}")
            return

        with self._lock:
            callbacks = list(self._topics.get(topic, {}).items())

        for subscription_id, callback in callbacks:
            try:
                callback(message)
            except Exception as e:
                self._logger.error(f"Error in callback for subscription {subscription_id}: {e}")

    def close(self) -> None:
        """Stop the listener and close Redis connections"""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5.0)

        self.pubsub.close()
        self.redis_client.close()
        self._logger.info("Redis message queue closed")


# ============================================================================
# FACTORY
# ============================================================================

class MessageBrokerFactory:
    """Factory for creating message brokers"""

    @staticmethod
    def create_redis_broker(redis_url: str = "redis://localhost:6379", **kwargs) -> RedisMessageQueue:
        return RedisMessageQueue(redis_url, **kwargs)

    @staticmethod
    def create_in_memory_broker() -> InMemoryMessageQueue:
        return InMemoryMessageQueue()

    @staticmethod
    def create(redis_url: Optional[str] = None) -> MessageQueue:
        """Redis broker when a URL is configured, in-memory otherwise"""
        if redis_url:
            return MessageBrokerFactory.create_redis_broker(redis_url)
        return MessageBrokerFactory.create_in_memory_broker()
