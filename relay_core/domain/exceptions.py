"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在路由层统一捕获并写入运维日志。

启动阶段的错误（ConfigError、PlatformConnectionError）会导致进程退出；
其余错误只影响单次回复尝试，不会波及其他并发任务。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "CONFIG_READ_ERROR"）。
        message: 运维可读错误信息，不会展示给终端用户。
        http_status: 与上游 HTTP 调用相关时的状态码，默认 400。
        extra: 其他补充字段（例如 channel_id、endpoint 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ConfigError(BusinessError):
    """配置文件不可读或格式错误，启动阶段致命。"""


class PlatformConnectionError(BusinessError):
    """无法建立或保持聊天平台会话，启动阶段致命。"""


class PlatformError(BusinessError):
    """聊天平台单次调用失败（发送、编辑、拉取历史等）。"""


class ContextRetrievalError(BusinessError):
    """拉取线程或父频道历史失败，放弃本次回复。"""


class ThreadCreationError(BusinessError):
    """创建回复线程失败，放弃本次回复。"""


class RequestDispatchError(BusinessError):
    """补全请求发送失败（连接失败或上游返回错误状态）。"""


class StreamReadError(BusinessError):
    """流式响应中途读取失败或未收到结束标记即关闭。"""


class DecodeError(BusinessError):
    """单行流式数据无法解析，跳过即可，不中断流。"""


class EditError(BusinessError):
    """聊天平台拒绝了占位消息的编辑。"""
