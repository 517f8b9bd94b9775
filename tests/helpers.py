"""Request helpers for API tests."""


def auth(user):
    return {"X-User-ID": str(user.user_id)}


async def start_direct(client, sender, recipient) -> str:
    response = await client.post(
        "/conversations",
        json={"participantId": str(recipient.user_id)},
        headers=auth(sender),
    )
    assert response.status_code == 201, response.text
    return response.json()["conversationId"]


async def start_group(client, admin, members, title="Weekend plans") -> str:
    response = await client.post(
        "/conversations",
        json={
            "isGroup": True,
            "participantIds": [str(m.user_id) for m in members],
            "title": title,
        },
        headers=auth(admin),
    )
    assert response.status_code == 201, response.text
    return response.json()["conversationId"]


async def send(client, sender, conversation_id, content="hello", **extra) -> dict:
    response = await client.post(
        f"/conversations/{conversation_id}/messages",
        json={"content": content, **extra},
        headers=auth(sender),
    )
    assert response.status_code == 201, response.text
    return response.json()


async def unread_count(client, user, conversation_id) -> int:
    response = await client.get("/conversations", headers=auth(user))
    assert response.status_code == 200, response.text
    for item in response.json()["conversations"]:
        if item["conversationId"] == conversation_id:
            return item["unreadCount"]
    raise AssertionError(f"conversation {conversation_id} not listed")
