"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在命令层或 UI 层做统一捕获，并以字符串形式展示给用户。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_READ_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 conversation_id、provider 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ConfigError(BusinessError):
    """配置缺失或格式错误，启动阶段即致命。"""


class NoApiKeyError(BusinessError):
    """没有可用的 API 密钥，不会发起任何网络请求。"""


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等（已重试一次）。"""


class ParseError(BusinessError):
    """响应体无法解析为预期的 chat completion 结构。"""


class ApiError(BusinessError):
    """第三方 API 返回非 2xx/429 错误时抛出。"""


class RateLimitError(BusinessError):
    """Provider 限流错误，不做自动重试。"""


class NotFoundError(BusinessError):
    """请求的会话不存在。"""


class StorageError(BusinessError):
    """存储后端读写或序列化失败。"""


class ValidationError(BusinessError):
    """参数校验失败。"""
