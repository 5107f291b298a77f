"""
表计读取器

在数码管解码器之上实现多功能电表的读数解析：
- 图像旋转校正
- 前 N 位为标签（如 "EHtL"），其余为数值
- 按标签查找读数类型，换算并校验数值
- 表头显示全 8 自检画面时自动重新校准
"""

from dataclasses import dataclass
from typing import Dict, Optional
import logging
import math
import re
import time

import numpy as np

from meterlcd.config import MeasureConfig, MeterConfig
from meterlcd.errors import CalibrationError, ReadError
from meterlcd.meter.validate import AccumulatorValidator, RangeValidator
from meterlcd.preprocessing.transform import rotate_image
from meterlcd.recognition.lcd import DecodeResult, LcdDecoder

logger = logging.getLogger(__name__)

# 数值部分只允许数字和一个小数点
NUMBER_PATTERN = re.compile(r"[0-9]+(\.[0-9]*)?")


@dataclass
class MeterReading:
    """一次有效读数"""
    label: str          # 读数标签
    value: float        # 换算后的数值
    text: str           # 解码的原始字符串
    timestamp: float    # 读取时间


class MeterReader:
    """
    表计读取器

    使用示例:
    ```python
    config = load_config("meter.json")
    reader = MeterReader(config)

    try:
        reading = reader.read(frame)
        if reading:
            print(reading.label, reading.value)
    except ReadError as e:
        logger.warning(e)
    ```
    """

    def __init__(self, config: MeterConfig, decoder: Optional[LcdDecoder] = None):
        """
        初始化读取器

        Args:
            config: 表计配置
            decoder: 解码器，默认由配置创建
        """
        self.config = config
        self.decoder = decoder or LcdDecoder(config.decoder)
        self._ranges: Dict[str, RangeValidator] = {}
        self._accums: Dict[str, AccumulatorValidator] = {}
        self._last_calibration: Optional[float] = None
        self.last_result: Optional[DecodeResult] = None

        for label, m in config.measures.items():
            if m.kind == "gauge":
                self._ranges[label] = RangeValidator(m.min, m.max)
            elif m.kind == "accum":
                self._accums[label] = AccumulatorValidator(m.max)

    def prepare(self, image: np.ndarray) -> np.ndarray:
        """按配置旋转图像"""
        if self.config.rotate:
            return rotate_image(image, self.config.rotate)
        return image

    def calibrate(
        self,
        image: np.ndarray,
        expected: str,
        timestamp: Optional[float] = None,
        force: bool = False
    ) -> bool:
        """
        重新校准解码器（受最小间隔限制）

        Args:
            image: 已旋转的图像
            expected: 图像上显示的字符
            timestamp: 当前时间（秒）
            force: 忽略最小间隔

        Returns:
            是否执行了校准
        """
        now = time.time() if timestamp is None else timestamp
        if not force and self._last_calibration is not None \
                and now - self._last_calibration < self.config.calibrate_interval:
            return False

        self._last_calibration = now
        logger.info(f"重新校准: {expected!r}")
        self.decoder.calibrate(image, expected)
        if self.decoder.config.calibration_file:
            self.decoder.save_calibration()
        return True

    def read(
        self,
        image: np.ndarray,
        timestamp: Optional[float] = None
    ) -> Optional[MeterReading]:
        """
        读取一帧图像

        Args:
            image: 原始图像
            timestamp: 读取时间（秒），默认当前时间

        Returns:
            有效读数；忽略类读数返回 None

        Raises:
            ReadError: 存在无效数字、标签未知、数值无法解析或校验失败
        """
        now = time.time() if timestamp is None else timestamp
        frame = self.prepare(image)
        result = self.decoder.decode(frame)
        self.last_result = result

        for i, d in enumerate(result.digits):
            if not d.valid:
                raise ReadError(f"第 {i} 位读取失败: {d.error}")

        n = self.config.label_digits
        label = "".join(d.text for d in result.digits[:n])
        value = "".join(d.text for d in result.digits[n:])

        measure = self.config.measures.get(label)
        if measure is None:
            raise ReadError(f"未知标签 {label!r} (数值 {value!r})")

        if measure.kind == "ignore":
            return None

        if measure.kind == "calibrate":
            digits = value.replace(".", "")
            if digits and set(digits) == {"8"} and self.config.recalibrate:
                try:
                    self.calibrate(frame, result.text, timestamp=now)
                except CalibrationError as e:
                    logger.warning(f"自动校准失败: {e}")
            return None

        number = self.parse_number(measure, value)

        if measure.kind == "gauge":
            ok, reason = self._ranges[label].validate(number)
        else:
            ok, reason = self._accums[label].validate(number, now)
        if not ok:
            raise ReadError(f"{label}: {reason}")

        logger.debug(f"读数: {label} = {number}")
        return MeterReading(label=label, value=number, text=result.text, timestamp=now)

    @staticmethod
    def parse_number(measure: MeasureConfig, value: str) -> float:
        """
        解析数值字符串

        前导 "-" 为负号，首尾空格（空白位）忽略，结果除以 scale。
        其余部分只能是数字和至多一个小数点。

        Raises:
            ReadError: 无法解析
        """
        text = value.strip()
        scale = measure.scale
        if text.startswith("-"):
            scale = -scale
            text = text[1:].strip()
        if not NUMBER_PATTERN.fullmatch(text):
            raise ReadError(f"无效数值 {value!r}")
        number = float(text) / scale
        if not math.isfinite(number):
            raise ReadError(f"无效数值 {value!r}")
        return number
