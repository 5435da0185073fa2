import pytest
from sqlalchemy import func, select

from chatline.core.errors import ValidationError
from chatline.models import Conversation
from chatline.services import conversations


def test_get_or_create_is_idempotent_for_either_order(db_session, test_user, other_user):
    first = conversations.get_or_create_direct_conversation(db_session, test_user.id, other_user.id)
    db_session.commit()
    second = conversations.get_or_create_direct_conversation(db_session, other_user.id, test_user.id)

    assert first.id == second.id
    assert db_session.scalar(select(func.count(Conversation.id))) == 1
    assert first.user_low_id < first.user_high_id


def test_conversation_with_self_rejected(db_session, test_user):
    with pytest.raises(ValidationError):
        conversations.get_or_create_direct_conversation(db_session, test_user.id, test_user.id)


def test_concurrent_insert_falls_back_to_existing_row(db_session, test_user, other_user, mocker):
    """A lost race on the unique pair returns the row the other request created."""
    existing = conversations.get_or_create_direct_conversation(db_session, test_user.id, other_user.id)
    db_session.commit()

    lookup = mocker.patch.object(
        conversations,
        "find_direct_conversation",
        side_effect=[None, existing],
    )

    resolved = conversations.get_or_create_direct_conversation(db_session, test_user.id, other_user.id)

    assert resolved.id == existing.id
    assert lookup.call_count == 2
    assert db_session.scalar(select(func.count(Conversation.id))) == 1


def test_find_returns_none_without_conversation(db_session, test_user, other_user):
    assert conversations.find_direct_conversation(db_session, test_user.id, other_user.id) is None
