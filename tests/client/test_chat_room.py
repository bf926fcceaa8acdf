"""Tests for ChatRoom view model and history date buckets."""

from datetime import date

import pytest

from hauhub_chat.client.ChatRoom import parse_timestamp, session_number
from hauhub_chat.types import ChatMessage, FileInfo, Member, MessageStatus


def _msg(timestamp, content="x", client_id=None, status=MessageStatus.CONFIRMED):
    return ChatMessage(
        group_id="g1", user_id="u9", content=content, timestamp=timestamp, client_id=client_id, status=status,
    )


class TestHelpers:
    def test_parse_timestamp_rejects_non_string(self) -> None:
        with pytest.raises(ValueError):
            parse_timestamp(1709546400)

    def test_parse_timestamp_accepts_z_suffix(self) -> None:
        parsed = parse_timestamp("2024-03-04T10:00:00Z")
        assert parsed.utcoffset().total_seconds() == 0
        assert parsed.hour == 10

    @pytest.mark.parametrize("day,expected", [
        (date(2024, 3, 1), 1),   # Friday
        (date(2024, 3, 2), 1),   # Saturday
        (date(2024, 3, 3), 2),   # Sunday starts a new week
        (date(2024, 3, 31), 6),
        (date(2024, 9, 1), 1),   # month starting on Sunday
        (date(2024, 9, 8), 2),
    ])
    def test_session_number(self, day, expected) -> None:
        assert session_number(day) == expected


class TestMessages:
    def test_add_message_publishes(self, room, bus) -> None:
        added = []
        bus.subscribe("message_added", added.append)
        message = _msg("2024-03-04T10:00:00Z")

        room.add_message(message)

        assert added == [message]

    def test_confirm_updates_local_message(self, room, bus) -> None:
        updated = []
        bus.subscribe("message_updated", updated.append)
        room.add_message(_msg("t0", client_id="c1", status=MessageStatus.PENDING))

        message = room.confirm("c1", message_id="m1", timestamp="2024-03-04T10:00:01Z", sender_name="NGUYEN VAN A")

        assert message.status is MessageStatus.CONFIRMED
        assert (message.id, message.timestamp, message.sender_name) == ("m1", "2024-03-04T10:00:01Z", "NGUYEN VAN A")
        assert updated == [message]

    def test_confirm_unknown_client_id(self, room) -> None:
        assert room.confirm("nope") is None
        assert room.set_status("nope", MessageStatus.FAILED) is None

    def test_pending_messages(self, room) -> None:
        room.add_message(_msg("t0", client_id="c1", status=MessageStatus.PENDING))
        room.add_message(_msg("t1", client_id="c2"))
        assert [m.client_id for m in room.pending_messages()] == ["c1"]

    def test_non_string_timestamp_is_skipped(self, room) -> None:
        room.messages.append(_msg(123))
        room.add_message(_msg("2024-03-04T10:00:00Z"))

        buckets = room.date_buckets()

        assert [len(b.messages) for b in buckets] == [1]

    def test_date_buckets_split_by_day(self, room) -> None:
        for ts in ["2024-03-02T08:00:00Z", "2024-03-02T09:00:00Z", "bad", "2024-03-04T10:00:00Z"]:
            room.add_message(_msg(ts, content=ts))

        buckets = room.date_buckets()

        assert [(b.day, b.session, len(b.messages)) for b in buckets] == [
            (date(2024, 3, 2), 1, 2),
            (date(2024, 3, 4), 2, 1),
        ]


class TestMembersAndFiles:
    def test_member_offline_clears_typing(self, room, bus) -> None:
        changed = []
        bus.subscribe("member_updated", changed.append)
        room.set_typing("u9", "Tran Minh")

        member = room.set_member_online("u9", False)

        assert member.is_online is False
        assert "u9" not in room.typing_users
        assert changed == [member]

    def test_unknown_member_untouched(self, room, bus) -> None:
        changed = []
        bus.subscribe("member_updated", changed.append)
        assert room.set_member_online("u404", True) is None
        assert changed == []

    def test_add_file_publishes(self, room, bus) -> None:
        added = []
        bus.subscribe("file_added", added.append)
        file = FileInfo(name="a.png", type="image/png")

        room.add_file(file)

        assert room.files == [file]
        assert added == [file]
        assert file.icon == "image"

    def test_load_replaces_state(self, room, bus) -> None:
        from hauhub_chat.types import GroupInfo

        loaded = []
        bus.subscribe("history_loaded", loaded.append)
        room.set_typing("u9", "Tran Minh")

        room.load(GroupInfo(id="g2"), [_msg("t")], [Member(id="u5", name="Le")], [])

        assert room.group_id == "g2"
        assert list(room.members) == ["u5"]
        assert room.typing_users == {}
        assert loaded == [room]

    def test_clear(self, room) -> None:
        room.clear()
        assert room.group_id is None
        assert room.members == {}
