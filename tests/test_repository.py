"""Tests for the in-memory and Supabase repositories."""

import json
from datetime import timedelta

import httpx
import pytest

from dental_mentor.domain.models import ContentPart, Conversation, Message, Role, SourceLink
from dental_mentor.repositories.base import StorageError
from dental_mentor.repositories.memory import InMemoryRepository
from dental_mentor.repositories.supabase import SupabaseRepository


@pytest.mark.asyncio
async def test_create_is_idempotent():
    repository = InMemoryRepository()
    first = await repository.create_conversation(Conversation(id="conv_1", user_id="u1", title="First"))
    second = await repository.create_conversation(Conversation(id="conv_1", user_id="u1", title="Second"))
    assert second.title == "First"
    assert first.id == second.id
    assert len(await repository.list_conversations("u1")) == 1


@pytest.mark.asyncio
async def test_messages_reload_in_order():
    repository = InMemoryRepository()
    await repository.create_conversation(Conversation(id="conv_1", user_id="u1"))
    first = Message.from_text("conv_1", Role.USER, "one")
    second = Message.from_text("conv_1", Role.ASSISTANT, "two")
    second.created_at = first.created_at + timedelta(milliseconds=1)
    await repository.append_message(second)
    await repository.append_message(first)
    assert [m.text for m in await repository.list_messages("conv_1")] == ["one", "two"]


@pytest.mark.asyncio
async def test_append_touches_conversation():
    repository = InMemoryRepository()
    conversation = await repository.create_conversation(Conversation(id="conv_1", user_id="u1"))
    message = Message.from_text("conv_1", Role.USER, "hi")
    message.created_at = conversation.updated_at + timedelta(seconds=5)
    await repository.append_message(message)
    assert (await repository.get_conversation("conv_1")).updated_at == message.created_at


@pytest.mark.asyncio
async def test_append_to_missing_conversation_fails():
    with pytest.raises(ValueError):
        await InMemoryRepository().append_message(Message.from_text("missing", Role.USER, "hi"))


@pytest.mark.asyncio
async def test_latest_and_update_message():
    repository = InMemoryRepository()
    await repository.create_conversation(Conversation(id="conv_1", user_id="u1"))
    reply = await repository.append_message(Message.from_text("conv_1", Role.ASSISTANT, "answer"))
    latest = await repository.latest_message("conv_1", Role.ASSISTANT)
    assert latest.id == reply.id
    await repository.update_message("conv_1", reply.id, [ContentPart(text="answer + sources")])
    assert (await repository.latest_message("conv_1", Role.ASSISTANT)).text == "answer + sources"
    assert await repository.latest_message("conv_1", Role.USER) is None


@pytest.mark.asyncio
async def test_update_message_is_scoped_to_its_conversation():
    repository = InMemoryRepository()
    for conversation_id in ("conv_1", "conv_2"):
        await repository.create_conversation(Conversation(id=conversation_id, user_id="u1"))
    mine = Message.from_text("conv_1", Role.ASSISTANT, "mine")
    theirs = Message.from_text("conv_2", Role.ASSISTANT, "theirs")
    theirs.id = mine.id
    await repository.append_message(mine)
    await repository.append_message(theirs)

    await repository.update_message("conv_2", mine.id, [ContentPart(text="patched")])

    assert (await repository.latest_message("conv_1", Role.ASSISTANT)).text == "mine"
    assert (await repository.latest_message("conv_2", Role.ASSISTANT)).text == "patched"
    with pytest.raises(ValueError):
        await repository.update_message("conv_3", mine.id, [ContentPart(text="x")])


@pytest.mark.asyncio
async def test_list_user_messages_limit():
    repository = InMemoryRepository()
    await repository.create_conversation(Conversation(id="conv_1", user_id="u1"))
    for index in range(5):
        message = Message.from_text("conv_1", Role.USER, f"q{index}")
        message.created_at = message.created_at + timedelta(milliseconds=index)
        await repository.append_message(message)
    assert [m.text for m in await repository.list_user_messages("conv_1")] == ["q0", "q1", "q2"]


@pytest.mark.asyncio
async def test_resolve_source_links_and_match_context():
    repository = InMemoryRepository(
        source_links=[SourceLink(id="a", display_name="A", url="https://a")],
        context_rows=[{"id": 1, "similarity": 0.9}, {"id": 2, "similarity": 0.1}],
    )
    assert [link.id for link in await repository.resolve_source_links(["a", "b"])] == ["a"]
    assert [row["id"] for row in await repository.match_context([0.0], 0.3, 15)] == [1]


def _supabase(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://sb.test")
    return SupabaseRepository("https://sb.test", "service-key", client=client)


@pytest.mark.asyncio
async def test_supabase_create_conversation_ignores_duplicates():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.method == "POST":
            return httpx.Response(201, json=[])
        return httpx.Response(
            200,
            json=[{"id": "conv_1", "user_id": "u1", "title": "Existing", "metadata": {"agentMode": "regular"}}],
        )

    repository = _supabase(handler)
    conversation = await repository.create_conversation(Conversation(id="conv_1", user_id="u1", title="New"))

    assert conversation.title == "Existing"
    post = requests[0]
    assert post.url.params["on_conflict"] == "id"
    assert "resolution=ignore-duplicates" in post.headers["prefer"]
    assert json.loads(post.content)["title"] == "New"


@pytest.mark.asyncio
async def test_supabase_append_message_writes_row_and_touches_conversation():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(201)

    repository = _supabase(handler)
    message = Message.from_text("conv_1", Role.ASSISTANT, "answer", user_id="u1")
    await repository.append_message(message)

    insert, touch = requests
    assert insert.url.path == "/rest/v1/voltagent_memory_messages"
    row = json.loads(insert.content)
    assert row["message_id"] == message.id
    assert row["parts"] == [{"type": "text", "text": "answer"}]
    assert row["format_version"] == 2
    assert touch.method == "PATCH"
    assert touch.url.params["id"] == "eq.conv_1"


@pytest.mark.asyncio
async def test_supabase_resolve_source_links():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["id"] == 'in.("ctx-1","ctx-2")'
        return httpx.Response(200, json=[{"id": "ctx-1", "context_name": "DAT Guide", "link": "https://x"}])

    links = await _supabase(handler).resolve_source_links(["ctx-1", "ctx-2"])
    assert links == [SourceLink(id="ctx-1", display_name="DAT Guide", url="https://x")]


@pytest.mark.asyncio
async def test_supabase_messages_parse():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["order"] == "created_at.asc"
        return httpx.Response(
            200,
            json=[
                {
                    "conversation_id": "conv_1",
                    "message_id": "msg_1_user",
                    "role": "user",
                    "parts": [{"type": "text", "text": "hi"}],
                    "created_at": "2024-01-01T00:00:00+00:00",
                }
            ],
        )

    messages = await _supabase(handler).list_messages("conv_1")
    assert [(m.id, m.role, m.text) for m in messages] == [("msg_1_user", Role.USER, "hi")]


@pytest.mark.asyncio
async def test_supabase_http_errors_become_storage_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"message": "boom"})

    with pytest.raises(StorageError):
        await _supabase(handler).list_messages("conv_1")


@pytest.mark.asyncio
async def test_supabase_update_message_filters_by_conversation():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(204)

    await _supabase(handler).update_message("conv_1", "msg_1_assistant", [ContentPart(text="patched")])

    (patch,) = requests
    assert patch.method == "PATCH"
    assert patch.url.params["conversation_id"] == "eq.conv_1"
    assert patch.url.params["message_id"] == "eq.msg_1_assistant"
    assert json.loads(patch.content) == {"parts": [{"type": "text", "text": "patched"}]}
