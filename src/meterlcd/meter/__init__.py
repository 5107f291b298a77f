"""
表计模块

在数码管解码结果之上解析电表读数:
- 标签/数值拆分
- 数值换算与符号处理
- 范围与累计值校验
"""

from meterlcd.meter.reader import (
    MeterReader,
    MeterReading,
)

from meterlcd.meter.validate import (
    RangeValidator,
    AccumulatorValidator,
)

__all__ = [
    # reader
    "MeterReader",
    "MeterReading",
    # validate
    "RangeValidator",
    "AccumulatorValidator",
]
