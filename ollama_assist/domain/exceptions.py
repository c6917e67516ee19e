"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在服务层统一捕获：补全路径吞掉错误只记日志，聊天路径
把错误转换成一条可见的 assistant 消息。
"""

from typing import Optional


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "NETWORK_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 url、model 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class TransportError(BusinessError):
    """与模型服务通信失败：连接失败、超时、非 2xx、响应格式错误。

    cause 保存底层异常，便于日志排查。
    """

    def __init__(
        self,
        code: str,
        message: str,
        http_status: int = 502,
        cause: Optional[BaseException] = None,
        **extra,
    ):
        super().__init__(code, message, http_status=http_status, **extra)
        self.cause = cause


class PartialStreamError(TransportError):
    """流式响应在已经产出部分内容之后中断。"""

    def __init__(self, message: str, received: str = "", cause: Optional[BaseException] = None, **extra):
        super().__init__("PARTIAL_STREAM", message, cause=cause, **extra)
        self.received = received


class ValidationError(BusinessError):
    """输入或功能开关校验失败（空输入、功能被禁用等）。

    引擎内部把它当作 no-op 处理，不会暴露给编辑器。
    """
