from relay_core.agents.context_assembler import ContextAssembler
from relay_core.agents.reply_engine import ReplyEngineConfig, StreamingReplyEngine
from relay_core.agents.thread_router import ThreadRouter

__all__ = ["ContextAssembler", "ReplyEngineConfig", "StreamingReplyEngine", "ThreadRouter"]
