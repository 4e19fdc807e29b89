from __future__ import annotations

from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock

from fastapi.testclient import TestClient

from api.middleware.exception_handlers import PersistenceError

CHANNEL_ID = "11111111-1111-4111-8111-111111111111"
HUMAN_ID = "22222222-2222-4222-8222-222222222222"
ANA, BEN, CY = (
    "aaaaaaaa-0000-4000-8000-000000000001",
    "aaaaaaaa-0000-4000-8000-000000000002",
    "aaaaaaaa-0000-4000-8000-000000000003",
)


def _send(client: TestClient, content: str = "hi @all", mentions: list[str] | None = None) -> Any:
    return client.post(
        "/api/v1/messages/send",
        json={"channel_id": CHANNEL_ID, "author_id": HUMAN_ID, "content": content, "mentions": mentions or []},
    )


def test_send_without_mentions_stores_message_only(client: TestClient, vendors: Any) -> None:
    response = _send(client, "just chatting")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["message"]["content"] == "just chatting"
    assert data["message"]["counts_toward_limit"] is False
    assert data["assistant_messages"] == []
    assert data["ai_failures"] == []
    assert vendors.requests == []


def test_send_collects_replies_in_mention_order(client: TestClient, vendors: Any) -> None:
    response = _send(client, "status?", [CY, ANA, BEN])

    data = response.json()
    assert response.status_code == 200
    assert data["message"]["mentions"] == [CY, ANA, BEN]
    assert data["message"]["counts_toward_limit"] is True
    assert [m["content"] for m in data["assistant_messages"]] == ["google reply", "openai reply", "anthropic reply"]
    assert [m["author_type"] for m in data["assistant_messages"]] == ["assistant"] * 3
    assert [r.url.host for r in vendors.requests] == [
        "generativelanguage.googleapis.com",
        "api.openai.com",
        "api.anthropic.com",
    ]


def test_failing_assistant_does_not_fail_the_send(client: TestClient, vendors: Any) -> None:
    vendors.replies["api.anthropic.com"] = (500, {"error": {"message": "internal"}})

    response = _send(client, "status?", [ANA, BEN, CY])

    data = response.json()
    assert response.status_code == 200
    assert [m["author_id"] for m in data["assistant_messages"]] == [ANA, CY]
    assert data["ai_failures"] == [{"assistant_id": BEN, "error": "Anthropic: API error (500): internal"}]


def test_duplicate_mentions_reply_once(client: TestClient, vendors: Any) -> None:
    data = _send(client, "hey", [ANA, ANA]).json()

    assert data["message"]["mentions"] == [ANA]
    assert len(data["assistant_messages"]) == 1
    assert len(vendors.requests) == 1


def test_unknown_mention_is_reported_as_failure(client: TestClient) -> None:
    missing = "ffffffff-0000-4000-8000-000000000009"

    data = _send(client, "hey", [missing]).json()

    assert data["assistant_messages"] == []
    assert data["ai_failures"][0]["assistant_id"] == missing


def test_blank_content_is_rejected(client: TestClient, store: AsyncMock) -> None:
    response = _send(client, "   ")

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VAL_2001"
    store.create_message.assert_not_called()


def test_store_failure_on_human_message_is_500(client: TestClient, store: AsyncMock, vendors: Any) -> None:
    store.create_message.side_effect = PersistenceError("insert message")

    response = _send(client, "hello", [ANA])

    assert response.status_code == 500
    assert vendors.requests == []


def test_list_channel_messages(client: TestClient, store: AsyncMock, make_message: Callable[..., Any]) -> None:
    store.list_channel_messages.return_value = [make_message(content="one"), make_message(content="two")]

    response = client.get(f"/api/v1/channels/{CHANNEL_ID}/messages", params={"limit": 2})

    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 2
    assert [m["content"] for m in data["messages"]] == ["one", "two"]
    store.list_channel_messages.assert_awaited_once_with(CHANNEL_ID, 2)


def test_list_channel_messages_rejects_bad_limit(client: TestClient) -> None:
    response = client.get(f"/api/v1/channels/{CHANNEL_ID}/messages", params={"limit": 0})

    assert response.status_code == 422
