"""补全协议的消息信封模型。

本模块定义了 Relay 内部在聊天平台与补全 API 之间共享的标准数据结构：

- Turn: 一条带角色的对话内容（system/user/assistant）。
- CompletionRequest: 发给补全端点的完整流式请求。
- CompletionChunk: 流式响应中解码出的单个增量。

这些结构创建后都不可变；每次调用补全 API 都会重新构造 CompletionRequest。
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Tuple

from relay_core.domain.exceptions import DecodeError


# 与 Ollama / OpenAI 等接口的 role 字段对应
Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class Turn:
    """一条对话消息。"""

    role: Role
    content: str

    def to_payload(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class CompletionRequest:
    """一次流式补全请求。

    turns 需要已经按“系统提示在前、会话按时间顺序在后”的顺序排好，
    本结构只负责序列化，不再调整顺序。
    """

    model: str
    turns: Tuple[Turn, ...] = field(default_factory=tuple)
    stream: bool = True

    def to_payload(self) -> Dict[str, Any]:
        """转换为补全端点要求的请求 JSON。"""

        return {
            "model": self.model,
            "stream": self.stream,
            "messages": [turn.to_payload() for turn in self.turns],
        }


@dataclass(frozen=True)
class CompletionChunk:
    """流式响应中的单个增量。

    - is_final: 是否为本次请求的结束块，收到后不再读取后续数据。
    - delta_text: 本次增量文本，按到达顺序拼接即为完整回答。
    """

    is_final: bool
    delta_text: str

    @classmethod
    def from_json(cls, line: str | bytes) -> "CompletionChunk":
        """解析一行 `{"done": bool, "message": {"content": str}}`。

        缺失字段按 False / "" 处理；非 JSON 或结构不对时抛出 DecodeError，
        由调用方决定跳过该行。
        """

        try:
            data = json.loads(line)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DecodeError(code="DECODE_ERROR", message=str(e))
        if not isinstance(data, dict):
            raise DecodeError(code="DECODE_ERROR", message="stream line is not a JSON object")
        message = data.get("message") or {}
        if not isinstance(message, dict):
            raise DecodeError(code="DECODE_ERROR", message="'message' is not a JSON object")
        return cls(
            is_final=bool(data.get("done", False)),
            delta_text=str(message.get("content") or ""),
        )
