"""WebSocket frame schemas for the subscription protocol.

Learn: Every frame is a JSON object tagged by "type". Client frames are a
discriminated union — pydantic picks the right model from the tag and
rejects unknown tags — so the gateway handles one explicit case per
variant instead of poking at loose dicts.

Client → server:   subscribe | unsubscribe | ping
Server → client:   subscribed | next | complete | error | pong
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from msgboard.realtime.bus import Topic


# ─── Client frames ──────────────────────────────────────

class SubscribeFrame(BaseModel):
    type: Literal["subscribe"]
    id: str = Field(..., min_length=1, max_length=64)
    topic: Topic


class UnsubscribeFrame(BaseModel):
    type: Literal["unsubscribe"]
    id: str = Field(..., min_length=1, max_length=64)


class PingFrame(BaseModel):
    type: Literal["ping"]


ClientFrame = Annotated[
    Union[SubscribeFrame, UnsubscribeFrame, PingFrame],
    Field(discriminator="type"),
]

client_frame_adapter: TypeAdapter[ClientFrame] = TypeAdapter(ClientFrame)


# ─── Server frames ──────────────────────────────────────

def subscribed_frame(sub_id: str) -> dict[str, Any]:
    return {"type": "subscribed", "id": sub_id}


def next_frame(sub_id: str, payload: Any) -> dict[str, Any]:
    return {"type": "next", "id": sub_id, "payload": payload}


def complete_frame(sub_id: str) -> dict[str, Any]:
    return {"type": "complete", "id": sub_id}


def error_frame(message: str, sub_id: Optional[str] = None) -> dict[str, Any]:
    frame: dict[str, Any] = {"type": "error", "message": message}
    if sub_id is not None:
        frame["id"] = sub_id
    return frame


PONG_FRAME = {"type": "pong"}
