"""Connection events and configuration-driven event subscribers.

Subscribers are named in configuration (``db_event_subscribers``) either by a
short registered name such as ``SQLiteSessionInit`` or by a dotted import path
(``myproject.listeners.AuditInit`` or ``myproject.listeners:AuditInit``).
"""

import importlib
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Type, Union

from dbharness.exceptions import InvalidSubscriberError

if TYPE_CHECKING:
    from dbharness.db.connection import TestConnection

logger = logging.getLogger(__name__)


class Events:
    """Names of the events dispatched by a TestConnection."""
    POST_CONNECT = "post_connect"


@dataclass
class ConnectionEventArgs:
    """Arguments passed to connection event listeners."""
    connection: "TestConnection"


class EventSubscriber(ABC):
    """A listener that declares which events it handles.

    For every event name returned by ``get_subscribed_events`` the subscriber
    must provide a method of the same name taking the event arguments.
    """

    @abstractmethod
    def get_subscribed_events(self) -> List[str]:
        pass


class EventManager:
    """Dispatches named events to listeners in registration order."""

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Any]] = defaultdict(list)

    def add_event_subscriber(self, subscriber: EventSubscriber) -> None:
        for event_name in subscriber.get_subscribed_events():
            self._listeners[event_name].append(subscriber)

    def add_event_listener(self, events: Union[str, Iterable[str]], listener: Any) -> None:
        """Register a listener object for one or more event names."""
        if isinstance(events, str):
            events = [events]
        for event_name in events:
            self._listeners[event_name].append(listener)

    def remove_event_subscriber(self, subscriber: EventSubscriber) -> None:
        for event_name in subscriber.get_subscribed_events():
            if subscriber in self._listeners.get(event_name, []):
                self._listeners[event_name].remove(subscriber)

    def get_listeners(self, event_name: str) -> List[Any]:
        return list(self._listeners.get(event_name, []))

    def has_listeners(self, event_name: str) -> bool:
        return bool(self._listeners.get(event_name))

    def dispatch_event(self, event_name: str, event_args: Any) -> None:
        for listener in self.get_listeners(event_name):
            getattr(listener, event_name)(event_args)


class SQLSessionInit(EventSubscriber):
    """Executes a single SQL statement right after a connection is opened."""

    def __init__(self, sql: str) -> None:
        self.sql = sql

    def get_subscribed_events(self) -> List[str]:
        return [Events.POST_CONNECT]

    def post_connect(self, args: ConnectionEventArgs) -> None:
        args.connection.execute_statement(self.sql)


class SQLiteSessionInit(SQLSessionInit):
    """Enables foreign key enforcement on SQLite connections."""

    def __init__(self) -> None:
        super().__init__("PRAGMA foreign_keys=ON")

    def post_connect(self, args: ConnectionEventArgs) -> None:
        if args.connection.dialect.name != "sqlite":
            return
        super().post_connect(args)


class SubscriberRegistry:
    """Maps configuration names to event subscriber classes."""

    _subscribers: Dict[str, Type[Any]] = {
        "SQLiteSessionInit": SQLiteSessionInit,
    }

    @classmethod
    def register_subscriber(cls, name: str, subscriber_class: Type[Any]) -> None:
        """Register a subscriber class under a short name.

        Raises:
            InvalidSubscriberError: If the class is not an EventSubscriber.
        """
        cls._check_subscriber_class(name, subscriber_class)
        cls._subscribers[name] = subscriber_class

    @classmethod
    def get_registered_names(cls) -> List[str]:
        return list(cls._subscribers.keys())

    @classmethod
    def resolve(cls, name: str) -> Type[EventSubscriber]:
        """Resolve a name to an EventSubscriber class.

        Raises:
            InvalidSubscriberError: If the name is unknown or not a subscriber class.
        """
        subscriber_class = cls._subscribers.get(name)
        if subscriber_class is None:
            subscriber_class = cls._import(name)

        cls._check_subscriber_class(name, subscriber_class)
        return subscriber_class

    @staticmethod
    def _import(name: str) -> Optional[Any]:
        if ":" in name:
            module_name, _, attribute = name.partition(":")
        else:
            module_name, _, attribute = name.rpartition(".")

        if not module_name or not attribute:
            return None

        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            raise InvalidSubscriberError(
                f'"{name}" is not a valid event subscriber: {e}',
                subscriber=name,
            ) from e

        return getattr(module, attribute, None)

    @staticmethod
    def _check_subscriber_class(name: str, subscriber_class: Any) -> None:
        if not (isinstance(subscriber_class, type) and issubclass(subscriber_class, EventSubscriber)):
            raise InvalidSubscriberError(
                f'"{name}" is not a valid event subscriber. '
                f'It must be a class that implements "{EventSubscriber.__name__}".',
                subscriber=name,
            )


def add_event_subscribers(connection: "TestConnection", subscribers: Iterable[str]) -> None:
    """Instantiate the named subscribers and attach them to the connection, in order.

    Raises:
        InvalidSubscriberError: On the first invalid name; later names are not attached.
    """
    event_manager = connection.event_manager

    for name in subscribers:
        subscriber_class = SubscriberRegistry.resolve(name)
        try:
            subscriber = subscriber_class()
        except TypeError as e:
            raise InvalidSubscriberError(
                f'"{name}" cannot be instantiated without arguments: {e}',
                subscriber=name,
            ) from e
        event_manager.add_event_subscriber(subscriber)
        logger.debug("Attached event subscriber %s", name)
