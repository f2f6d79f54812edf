"""Tests for the event manager and configuration-driven subscribers."""

from typing import List
from unittest.mock import Mock

import pytest

from dbharness.config import ConnectionParameters
from dbharness.db.connection import DriverManager
from dbharness.events import (
    ConnectionEventArgs,
    EventManager,
    Events,
    EventSubscriber,
    SQLiteSessionInit,
    SQLSessionInit,
    SubscriberRegistry,
    add_event_subscribers,
)
from dbharness.exceptions import InvalidSubscriberError


class RecordingSubscriber(EventSubscriber):
    """Subscriber used by tests; records every post_connect call."""

    calls: List[str] = []

    def get_subscribed_events(self) -> List[str]:
        return [Events.POST_CONNECT]

    def post_connect(self, args: ConnectionEventArgs) -> None:
        RecordingSubscriber.calls.append(type(self).__name__)


class NotASubscriber:
    pass


class IncompleteSubscriber(EventSubscriber):
    """Subscriber that leaves get_subscribed_events unimplemented."""


@pytest.fixture(autouse=True)
def reset_recorded_calls():
    RecordingSubscriber.calls = []


class TestEventManager:
    """Test listener registration and dispatch."""

    def test_dispatch_in_registration_order(self):
        """Test that listeners run in the order they were added."""
        manager = EventManager()
        order = []
        first = Mock(post_connect=lambda args: order.append('first'))
        second = Mock(post_connect=lambda args: order.append('second'))

        manager.add_event_listener(Events.POST_CONNECT, first)
        manager.add_event_listener([Events.POST_CONNECT], second)
        manager.dispatch_event(Events.POST_CONNECT, ConnectionEventArgs(connection=Mock()))

        assert order == ['first', 'second']

    def test_subscriber_registration(self):
        """Test adding and removing a subscriber."""
        manager = EventManager()
        subscriber = RecordingSubscriber()

        manager.add_event_subscriber(subscriber)
        assert manager.has_listeners(Events.POST_CONNECT)
        assert manager.get_listeners(Events.POST_CONNECT) == [subscriber]

        manager.remove_event_subscriber(subscriber)
        assert not manager.has_listeners(Events.POST_CONNECT)

    def test_dispatch_without_listeners(self):
        """Test that dispatching an unobserved event is a no-op."""
        EventManager().dispatch_event('unknown_event', None)


class TestSessionInit:
    """Test the SQL session initializers."""

    def test_sql_session_init_executes_statement(self):
        """Test that the configured SQL runs on connect."""
        connection = Mock()

        SQLSessionInit("SET search_path TO tests").post_connect(ConnectionEventArgs(connection))

        connection.execute_statement.assert_called_once_with("SET search_path TO tests")

    def test_sqlite_session_init_skips_other_dialects(self):
        """Test that the SQLite pragma is not sent to other engines."""
        connection = Mock()
        connection.dialect.name = 'postgresql'

        SQLiteSessionInit().post_connect(ConnectionEventArgs(connection))

        connection.execute_statement.assert_not_called()

    def test_sqlite_foreign_keys_enabled(self):
        """Test that foreign keys are enforced on a fresh SQLite connection."""
        params = ConnectionParameters.from_mapping({'driver': 'sqlite', 'memory': True})
        with DriverManager.get_connection(params) as connection:
            add_event_subscribers(connection, ['SQLiteSessionInit'])

            assert connection.fetch_all_associative('PRAGMA foreign_keys') == [{'foreign_keys': 1}]


class TestSubscriberResolution:
    """Test resolving configured names to subscriber classes."""

    def test_registered_name(self):
        """Test the built-in short name."""
        assert SubscriberRegistry.resolve('SQLiteSessionInit') is SQLiteSessionInit
        assert 'SQLiteSessionInit' in SubscriberRegistry.get_registered_names()

    def test_dotted_and_colon_paths(self):
        """Test import paths in both supported forms."""
        assert SubscriberRegistry.resolve(f"{__name__}.RecordingSubscriber") is RecordingSubscriber
        assert SubscriberRegistry.resolve(f"{__name__}:RecordingSubscriber") is RecordingSubscriber

    def test_unknown_name(self):
        """Test the error for a name that resolves to nothing."""
        with pytest.raises(InvalidSubscriberError) as exc_info:
            SubscriberRegistry.resolve('NoSuchSubscriber')

        assert exc_info.value.subscriber == 'NoSuchSubscriber'
        assert str(exc_info.value) == (
            '"NoSuchSubscriber" is not a valid event subscriber. '
            'It must be a class that implements "EventSubscriber".'
        )

    def test_unimportable_module(self):
        """Test the error for a path whose module cannot be imported."""
        with pytest.raises(InvalidSubscriberError, match="not a valid event subscriber"):
            SubscriberRegistry.resolve('no_such_package.listeners.Init')

    def test_class_that_is_not_a_subscriber(self):
        """Test that arbitrary classes are rejected."""
        with pytest.raises(InvalidSubscriberError):
            SubscriberRegistry.resolve(f"{__name__}.NotASubscriber")

    def test_register_rejects_non_subscribers(self, monkeypatch):
        """Test validation on registration."""
        monkeypatch.setattr(SubscriberRegistry, '_subscribers', dict(SubscriberRegistry._subscribers))

        with pytest.raises(InvalidSubscriberError):
            SubscriberRegistry.register_subscriber('Bad', NotASubscriber)

        SubscriberRegistry.register_subscriber('Recording', RecordingSubscriber)
        assert SubscriberRegistry.resolve('Recording') is RecordingSubscriber


class TestAddEventSubscribers:
    """Test attaching configured subscribers to a connection."""

    def test_subscribers_attached_in_order(self, fake_connection):
        """Test that every named subscriber is attached once, in order."""
        connection = fake_connection()
        names = ['SQLiteSessionInit', f"{__name__}.RecordingSubscriber"]

        add_event_subscribers(connection, names)

        listeners = connection.event_manager.get_listeners(Events.POST_CONNECT)
        assert [type(listener) for listener in listeners] == [SQLiteSessionInit, RecordingSubscriber]

    def test_invalid_name_stops_processing(self, fake_connection):
        """Test fail-fast: names after an invalid one are not attached."""
        connection = fake_connection()
        names = [f"{__name__}.RecordingSubscriber", 'Unknown', 'SQLiteSessionInit']

        with pytest.raises(InvalidSubscriberError):
            add_event_subscribers(connection, names)

        listeners = connection.event_manager.get_listeners(Events.POST_CONNECT)
        assert [type(listener) for listener in listeners] == [RecordingSubscriber]

    @pytest.mark.parametrize('name', ['dbharness.events.SQLSessionInit', f"{__name__}.IncompleteSubscriber"])
    def test_subscriber_needing_arguments(self, fake_connection, name):
        """Test that a subscriber class that cannot be built without arguments is rejected."""
        connection = fake_connection()

        with pytest.raises(InvalidSubscriberError, match='cannot be instantiated') as exc_info:
            add_event_subscribers(connection, [name])

        assert exc_info.value.subscriber == name
        assert isinstance(exc_info.value.__cause__, TypeError)
        assert connection.event_manager.get_listeners(Events.POST_CONNECT) == []
