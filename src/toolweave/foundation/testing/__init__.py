"""Testing utilities: in-process tool server and scripted adapter.

Provides:
- FakeToolServer: JSON-RPC tool server wired to a real StreamTransport
- ScriptedAdapter: replays model turns and records what the loop sent
- text / invoke: builders for scripted turns
"""

from .mock import ChatCall, ScriptedAdapter, invoke, text
from .server import FakeToolServer, LoopbackWriter, ToolCall

__all__ = ["FakeToolServer", "LoopbackWriter", "ToolCall", "ScriptedAdapter", "ChatCall", "invoke", "text"]
