"""统一业务异常模型。

所有跨模块抛出的业务级错误都继承自 BusinessError，
便于在 API 层统一捕获并转换为用户可读的结果。

分类：
- ValidationError: 输入校验失败（可恢复，直接返回给调用方）。
- RateLimitError: 会话限流（可恢复，附带剩余次数）。
- BackendError: 生成后端故障，由编排层替换为本地化兜底回复。
- PersistenceError: 存储写入/读取失败，记录日志后吞掉。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_WRITE_ERROR"）。
        message: 可读错误信息（仅用于日志，不直接展示给终端用户）。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 turn_id、provider 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ValidationError(BusinessError):
    """参数或配置校验失败。

    kind 为 ErrorKind 枚举值（TooShort / TooLong / InvalidFormat ...），
    配置类错误（例如缺少 API key）可以不带 kind。
    """

    def __init__(self, code: str, message: str, kind=None, **extra):
        super().__init__(code=code, message=message, http_status=422, **extra)
        self.kind = kind


class RateLimitError(BusinessError):
    """会话级限流：窗口内次数已用完。"""

    def __init__(self, code: str, message: str, remaining: int = 0, **extra):
        super().__init__(code=code, message=message, http_status=429, **extra)
        self.remaining = remaining


class BackendError(BusinessError):
    """生成后端相关错误的基类。"""


class NetworkError(BackendError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(BackendError):
    """第三方 API 返回非 2xx 错误时抛出。"""


class ProviderRateLimitError(BackendError):
    """Provider 返回 429，与本地会话限流区分开。"""


class EmptyResponseError(BackendError):
    """后端调用成功但没有产出任何文本。"""


class BackendTimeoutError(BackendError):
    """单轮对话在截止时间内没有结束。"""


class MissingApiKeyError(BackendError):
    """未配置 Provider 的 API key。"""


class PersistenceError(BusinessError):
    """对话存储读写失败。"""
