#!/usr/bin/env python3
"""
msgboard quickstart — one message through its whole lifecycle.

Posts a message, replies to it, edits it, deletes it, and lists the board
after each step. Open a WebSocket to ws://localhost:4000/subscriptions and
subscribe to messageAdded / messageUpdated / messageDeleted to watch the
same changes arrive live.

Run with: python examples/quickstart.py
Backend must be running: msgboard serve
"""

import sys

import httpx

BASE = "http://localhost:4000/api/v1"


def show_board(client: httpx.Client) -> None:
    messages = client.get("/messages").json()
    if not messages:
        print("   (board is empty)")
    for m in messages:
        reply = f" ↳ #{m['parentId']}" if m["parentId"] else ""
        print(f"   #{m['id']} {m['user']}: {m['content']}{reply}")


def main():
    client = httpx.Client(base_url=BASE, timeout=10)

    # ── Health check ──────────────────────────────────────────────
    print("Checking backend health...")
    try:
        resp = client.get("/health")
    except httpx.ConnectError:
        print(f"Backend not reachable at {BASE}")
        sys.exit(1)
    health = resp.json()
    print(f"  Database: {'✓' if health['database'] == 'ok' else '✗'}")
    print(f"  Bus:      {'✓' if health['bus'] == 'ok' else '✗'} "
          f"({health['subscribers']} subscribers)")

    # ── Post ──────────────────────────────────────────────────────
    print("\n1. Posting a message...")
    resp = client.post("/messages", json={"user": "alice", "content": "hi everyone"})
    assert resp.status_code == 201, f"Failed: {resp.text}"
    root = resp.json()
    show_board(client)

    # ── Reply ─────────────────────────────────────────────────────
    print("\n2. Replying...")
    resp = client.post("/messages", json={
        "user": "bob",
        "content": "hey alice",
        "parentId": root["id"],
    })
    assert resp.status_code == 201, f"Failed: {resp.text}"
    reply = resp.json()
    show_board(client)

    # ── Edit ──────────────────────────────────────────────────────
    print("\n3. Editing the first message...")
    resp = client.put(f"/messages/{root['id']}", json={
        "user": "alice",
        "content": "hello everyone",
    })
    assert resp.status_code == 200, f"Failed: {resp.text}"
    show_board(client)

    # ── Delete ────────────────────────────────────────────────────
    print("\n4. Deleting both messages...")
    for m in (reply, root):
        resp = client.delete(f"/messages/{m['id']}")
        assert resp.status_code == 200, f"Failed: {resp.text}"
    show_board(client)

    # ── Not found ─────────────────────────────────────────────────
    resp = client.delete(f"/messages/{root['id']}")
    print(f"\n5. Deleting again → {resp.status_code} ({resp.json()['detail']})")


if __name__ == "__main__":
    main()
