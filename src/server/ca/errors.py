"""
证书签发服务的异常类型。

- ValidationError: 输入缺失或格式错误，映射为 400
- CryptoError: 曲线不支持、签名校验失败、PEM 无法解析等，映射为 500
- ResourceError: 序列号状态文件的创建/写入/清理失败，映射为 500
"""


class CAError(Exception):
    """所有证书签发错误的基类。"""

    kind = "CAError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CAError, ValueError):
    kind = "ValidationError"


class CryptoError(CAError, RuntimeError):
    kind = "CryptoError"


class ResourceError(CAError, RuntimeError):
    kind = "ResourceError"
