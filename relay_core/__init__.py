"""Relay Core 顶层包。

该包把 Discord 频道中的消息转发给流式补全 API，
并在回复线程里逐步编辑占位消息以展示生成中的回答。
包括配置加载、领域模型、补全客户端、上下文组装、
流式回复引擎与 Discord 适配层。
"""

__version__ = "0.1.0"
