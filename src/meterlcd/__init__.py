"""
MeterLCD - 七段数码管电表读数

通过摄像头拍摄表头液晶屏，逐段采样亮度并解码为数字。
"""

__version__ = "0.1.0"

from meterlcd.config import DecoderConfig, DigitConfig, MeterConfig, load_config
from meterlcd.errors import (
    LcdError,
    ConfigError,
    CalibrationError,
    PersistenceError,
    ReadError,
)
from meterlcd.recognition import LcdDecoder, DecodeResult
from meterlcd.meter import MeterReader

__all__ = [
    "DecoderConfig",
    "DigitConfig",
    "MeterConfig",
    "load_config",
    "LcdError",
    "ConfigError",
    "CalibrationError",
    "PersistenceError",
    "ReadError",
    "LcdDecoder",
    "DecodeResult",
    "MeterReader",
    "__version__",
]
