import dataclasses

import pytest

from relay_core.domain.exceptions import DecodeError
from relay_core.domain.models import CompletionChunk, CompletionRequest, Turn


def test_turn_is_immutable():
    turn = Turn(role="user", content="hi")
    with pytest.raises(dataclasses.FrozenInstanceError):
        turn.content = "changed"


def test_request_payload_shape():
    req = CompletionRequest(
        model="m",
        turns=(Turn(role="system", content="sys"), Turn(role="user", content="Hello")),
    )
    assert req.to_payload() == {
        "model": "m",
        "stream": True,
        "messages": [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "Hello"},
        ],
    }


def test_chunk_decode():
    chunk = CompletionChunk.from_json('{"done":false,"message":{"content":"hi"}}')
    assert chunk == CompletionChunk(is_final=False, delta_text="hi")
    final = CompletionChunk.from_json(b'{"done":true,"message":{"role":"assistant","content":""}}')
    assert final.is_final
    assert final.delta_text == ""


def test_chunk_missing_fields_default():
    chunk = CompletionChunk.from_json("{}")
    assert chunk == CompletionChunk(is_final=False, delta_text="")


@pytest.mark.parametrize("line", ['{"garbage', "[1, 2]", '{"message": "text"}', "not json"])
def test_chunk_decode_errors(line):
    with pytest.raises(DecodeError):
        CompletionChunk.from_json(line)
