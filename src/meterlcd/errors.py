"""
异常类型

抛出给调用方的错误:
- ConfigError: 数码管配置错误或几何不合法
- CalibrationError: 校准字符串与位数不符、未知字符、上下限冲突
- PersistenceError: 校准缓存文件格式错误或索引越界
- ReadError: 表计读数无效

仅记录在单个数字结果上的错误 (不会抛出):
- DecodeOutOfBounds: 采样线超出图像范围
- UnrecognisedMask: 段掩码无对应字符
"""

from typing import Optional


class LcdError(Exception):
    """数码管解码器异常基类"""


class ConfigError(LcdError, ValueError):
    """配置错误"""


class CalibrationError(LcdError, ValueError):
    """校准错误"""

    def __init__(self, message: str, report=None):
        super().__init__(message)
        self.report = report


class PersistenceError(LcdError, ValueError):
    """校准缓存读写错误"""

    def __init__(self, message: str, lineno: Optional[int] = None):
        if lineno is not None:
            message = f"第 {lineno} 行: {message}"
        super().__init__(message)
        self.lineno = lineno


class DecodeOutOfBounds(LcdError):
    """数字模板采样超出图像范围"""

    def __init__(self, digit: int, width: int, height: int):
        super().__init__(f"数字 {digit} 的采样点超出图像范围 ({width}x{height})")
        self.digit = digit


class UnrecognisedMask(LcdError):
    """无法识别的段掩码"""

    def __init__(self, digit: int, mask: int):
        super().__init__(f"数字 {digit} 的段掩码 0x{mask:02X} 无法识别")
        self.digit = digit
        self.mask = mask


class ReadError(LcdError):
    """表计读数无效（存在无效数字、未知标签、超出范围等）"""
