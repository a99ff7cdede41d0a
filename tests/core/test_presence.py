"""
Tests for the in-memory presence registry.
"""
from pingy.core.presence import PresenceRegistry


class TestPresenceRegistry:
    """Test cases for PresenceRegistry."""

    def test_first_connection_brings_user_online(self):
        registry = PresenceRegistry()

        assert registry.add_connection("user-1", "sid-a") is True
        assert registry.is_online("user-1")
        assert registry.connection_count("user-1") == 1

    def test_second_device_does_not_announce_again(self):
        registry = PresenceRegistry()
        registry.add_connection("user-1", "sid-a")

        assert registry.add_connection("user-1", "sid-b") is False
        assert registry.connection_count("user-1") == 2

    def test_user_stays_online_until_last_connection_closes(self):
        registry = PresenceRegistry()
        registry.add_connection("user-1", "sid-a")
        registry.add_connection("user-1", "sid-b")

        assert registry.remove_connection("user-1", "sid-a") is False
        assert registry.is_online("user-1")

        assert registry.remove_connection("user-1", "sid-b") is True
        assert not registry.is_online("user-1")
        assert registry.connection_count("user-1") == 0

    def test_removing_unknown_connection_is_harmless(self):
        registry = PresenceRegistry()

        assert registry.remove_connection("ghost", "sid-x") is False
        assert not registry.is_online("ghost")

    def test_same_connection_id_is_counted_once(self):
        registry = PresenceRegistry()
        registry.add_connection("user-1", "sid-a")
        registry.add_connection("user-1", "sid-a")

        assert registry.connection_count("user-1") == 1
        assert registry.remove_connection("user-1", "sid-a") is True

    def test_online_user_ids(self):
        registry = PresenceRegistry()
        registry.add_connection("user-1", "sid-a")
        registry.add_connection("user-2", "sid-b")
        registry.remove_connection("user-2", "sid-b")

        assert registry.online_user_ids() == ["user-1"]

    def test_registries_are_independent(self):
        first = PresenceRegistry()
        second = PresenceRegistry()
        first.add_connection("user-1", "sid-a")

        assert not second.is_online("user-1")
