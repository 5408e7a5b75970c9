"""统一业务异常模型。

Provider 内部的所有可预期错误都继承自 BusinessError。
这些异常只在 Provider 内部抛出，由 stream_completion 统一
转换为一条可见的文本块，不会穿过流式接口抛给调用方。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "MISSING_API_KEY"）。
        message: 用户可读错误信息，即最终产出的那一条文本块。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 provider、url 等），仅用于日志。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ConfigurationError(BusinessError):
    """缺少 API Key / 模型名等必需配置，不会发起网络请求。"""


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、DNS 解析失败、超时等。"""


class ApiError(BusinessError):
    """第三方 API 返回非 2xx 状态码时抛出。"""


class DecodeError(BusinessError):
    """单行响应无法解析或缺少预期字段，只在解码器内部使用并被跳过。"""
