"""Tests for the in-memory conversation and message store."""

from uuid import uuid4

import pytest

from linkup_messaging.domain.errors import (
    ConversationNotFound,
    DuplicateConversation,
    DuplicateReaction,
    MessageNotFound,
    ValidationFailed,
)
from linkup_messaging.domain.models import (
    DirectConversation,
    GroupConversation,
    Message,
    Reaction,
)
from linkup_messaging.repositories.memory import InMemoryRepository


@pytest.fixture
def ids():
    return [uuid4() for _ in range(4)]


@pytest.mark.asyncio
async def test_direct_pair_is_unique_in_either_order(ids):
    repository = InMemoryRepository()
    a, b = ids[0], ids[1]
    await repository.create_conversation(DirectConversation(participant_ids=[a, b]))

    with pytest.raises(DuplicateConversation):
        await repository.create_conversation(DirectConversation(participant_ids=[b, a]))

    found = await repository.find_direct_conversation(b, a)
    assert found is not None
    assert await repository.count_conversations(a) == 1


@pytest.mark.asyncio
async def test_group_does_not_block_direct_conversation(ids):
    repository = InMemoryRepository()
    a, b = ids[0], ids[1]
    await repository.create_conversation(
        GroupConversation(participant_ids=[a, b], title="pair group", admin_id=a)
    )
    await repository.create_conversation(DirectConversation(participant_ids=[a, b]))
    assert await repository.count_conversations(a) == 2


@pytest.mark.asyncio
async def test_sequences_and_last_activity(ids):
    repository = InMemoryRepository()
    a, b = ids[0], ids[1]
    conversation = await repository.create_conversation(DirectConversation(participant_ids=[a, b]))

    first = await repository.add_message(Message(conversation_id=conversation.id, sender_id=a, content="1"))
    second = await repository.add_message(Message(conversation_id=conversation.id, sender_id=b, content="2"))
    assert (first.sequence, second.sequence) == (1, 2)

    stored = await repository.get_conversation(conversation.id)
    assert stored.last_sequence == 2
    assert stored.updated_at == second.created_at
    assert (await repository.last_message(conversation.id)).id == second.id

    newest_first = await repository.get_messages(conversation.id, limit=10)
    assert [m.sequence for m in newest_first] == [2, 1]


@pytest.mark.asyncio
async def test_add_message_rejects_outsiders_and_foreign_replies(ids):
    repository = InMemoryRepository()
    a, b, c = ids[0], ids[1], ids[2]
    ours = await repository.create_conversation(DirectConversation(participant_ids=[a, b]))
    theirs = await repository.create_conversation(DirectConversation(participant_ids=[a, c]))
    foreign = await repository.add_message(Message(conversation_id=theirs.id, sender_id=c, content="x"))

    with pytest.raises(ConversationNotFound):
        await repository.add_message(Message(conversation_id=ours.id, sender_id=c, content="intrude"))

    with pytest.raises(ValidationFailed):
        await repository.add_message(
            Message(conversation_id=ours.id, sender_id=a, content="re", reply_to_id=foreign.id)
        )
    assert await repository.get_messages(ours.id) == []
    assert (await repository.get_conversation(ours.id)).last_sequence == 0


@pytest.mark.asyncio
async def test_reaction_uniqueness_is_enforced_by_store(ids):
    repository = InMemoryRepository()
    a, b = ids[0], ids[1]
    conversation = await repository.create_conversation(DirectConversation(participant_ids=[a, b]))
    message = await repository.add_message(Message(conversation_id=conversation.id, sender_id=a, content="hi"))

    await repository.add_reaction(message.id, Reaction(emoji="👍", user_id=b))
    with pytest.raises(DuplicateReaction):
        await repository.add_reaction(message.id, Reaction(emoji="🔥", user_id=b))
    with pytest.raises(MessageNotFound):
        await repository.add_reaction(uuid4(), Reaction(emoji="🔥", user_id=b))

    stored = await repository.get_message(message.id)
    assert [r.emoji for r in stored.reactions] == ["👍"]


@pytest.mark.asyncio
async def test_mark_read_all_or_nothing(ids):
    repository = InMemoryRepository()
    a, b, c = ids[0], ids[1], ids[2]
    ours = await repository.create_conversation(DirectConversation(participant_ids=[a, b]))
    theirs = await repository.create_conversation(DirectConversation(participant_ids=[a, c]))
    visible = await repository.add_message(Message(conversation_id=ours.id, sender_id=a, content="1"))
    hidden = await repository.add_message(Message(conversation_id=theirs.id, sender_id=a, content="2"))

    with pytest.raises(ValidationFailed):
        await repository.mark_read(b, [visible.id, hidden.id])
    with pytest.raises(ValidationFailed):
        await repository.mark_read(b, [visible.id, uuid4()])
    assert await repository.count_unread(ours.id, b) == 1

    result = await repository.mark_read(b, [visible.id])
    assert result.updated_count == 1
    assert result.conversation_ids == {ours.id}
    assert await repository.count_unread(ours.id, b) == 0

    again = await repository.mark_read(b, [visible.id])
    assert again.updated_count == 0


@pytest.mark.asyncio
async def test_update_participants_rules(ids):
    repository = InMemoryRepository()
    admin, b, c, d = ids
    group = await repository.create_conversation(
        GroupConversation(participant_ids=[admin, b, c], title="team", admin_id=admin)
    )

    updated = await repository.update_participants(group.id, add=[d], remove=[c], max_size=4)
    assert updated.participant_ids == [admin, b, d]

    with pytest.raises(ValidationFailed):
        await repository.update_participants(group.id, add=[b], remove=[], max_size=4)
    with pytest.raises(ValidationFailed):
        await repository.update_participants(group.id, add=[], remove=[c], max_size=4)
    with pytest.raises(ValidationFailed):
        await repository.update_participants(group.id, add=[], remove=[admin], max_size=4)
    with pytest.raises(ValidationFailed):
        await repository.update_participants(group.id, add=[], remove=[b, d], max_size=4)
    with pytest.raises(ValidationFailed):
        await repository.update_participants(group.id, add=[c, uuid4()], remove=[], max_size=4)

    direct = await repository.create_conversation(DirectConversation(participant_ids=[admin, b]))
    with pytest.raises(ValidationFailed):
        await repository.update_participants(direct.id, add=[c], remove=[], max_size=4)


@pytest.mark.asyncio
async def test_returned_records_are_copies(ids):
    repository = InMemoryRepository()
    a, b = ids[0], ids[1]
    conversation = await repository.create_conversation(DirectConversation(participant_ids=[a, b]))
    message = await repository.add_message(Message(conversation_id=conversation.id, sender_id=a, content="hi"))

    message.content = "edited"
    message.reactions.append(Reaction(emoji="👍", user_id=b))

    stored = await repository.get_message(message.id)
    assert stored.content == "hi"
    assert stored.reactions == []
