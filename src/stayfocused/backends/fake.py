from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, List, Union

from stayfocused.backends.registry import MessageRequest, register_backend
from stayfocused.core.types import STOP_END_TURN, ModelResponse, response_from_payload

ScriptedResponse = Union[ModelResponse, dict]


@dataclass(slots=True)
class FakeBackend:
    responses: List[ScriptedResponse] = field(default_factory=list)
    calls: List[MessageRequest] = field(default_factory=list)
    repeat_last: bool = False

    def create_message(self, request: MessageRequest) -> ModelResponse:
        self.calls.append(request)
        if not self.responses:
            return ModelResponse(content=[], stop_reason=STOP_END_TURN)
        if self.repeat_last and len(self.responses) == 1:
            response = self.responses[0]
        else:
            response = self.responses.pop(0)
        if isinstance(response, dict):
            return response_from_payload(response)
        return response


def _load_env_json_list(env_value: str) -> list[dict[str, Any]]:
    data = json.loads(env_value)
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise ValueError("fake responses must be a JSON list of message objects")
    return data


def _factory(**_kwargs: Any) -> "FakeBackend":
    backend = FakeBackend()
    responses_json = os.getenv("STAYFOCUSED_FAKE_RESPONSES")
    if responses_json:
        backend.responses = list(_load_env_json_list(responses_json))
    return backend


register_backend("fake", _factory)
