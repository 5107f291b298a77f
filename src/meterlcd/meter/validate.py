"""
读数校验模块

- 瞬时值 (gauge): 范围检查 [min, max)
- 累计值 (accum): 不允许回退，每小时增量不超过上限

用于过滤数码管误读造成的异常读数
"""

from typing import Optional, Tuple
import math
import time


class RangeValidator:
    """
    范围校验器

    使用示例:
    ```python
    validator = RangeValidator(min_value=0, max_value=10)
    valid, reason = validator.validate(measurement)
    ```
    """

    def __init__(
        self,
        min_value: Optional[float] = None,
        max_value: Optional[float] = None
    ):
        """
        初始化校验器

        Args:
            min_value: 最小有效值（含）
            max_value: 最大有效值（不含）
        """
        self.min_value = min_value
        self.max_value = max_value

    def validate(self, measurement: float) -> Tuple[bool, str]:
        """
        校验数值

        Args:
            measurement: 测量值

        Returns:
            (是否有效, 原因)
        """
        if self.min_value is not None and measurement < self.min_value:
            return (False, f"低于下限 ({measurement} < {self.min_value})")

        if self.max_value is not None and measurement >= self.max_value:
            return (False, f"超出上限 ({measurement} >= {self.max_value})")

        return (True, "")


class AccumulatorValidator:
    """
    累计值校验器

    电度表等累计读数只会增加，且增长速度有限

    使用示例:
    ```python
    validator = AccumulatorValidator(max_hourly_increase=20.0)
    valid, reason = validator.validate(measurement)
    ```
    """

    def __init__(self, max_hourly_increase: Optional[float] = None):
        """
        初始化校验器

        Args:
            max_hourly_increase: 每小时最大增量，None 或 inf 为不限制
        """
        self.max_hourly_increase = max_hourly_increase
        self._last_value: Optional[float] = None
        self._last_time: Optional[float] = None

    def validate(
        self,
        measurement: float,
        timestamp: Optional[float] = None
    ) -> Tuple[bool, str]:
        """
        校验数值，有效时记录为新的基准

        Args:
            measurement: 测量值
            timestamp: 测量时间（秒），默认当前时间

        Returns:
            (是否有效, 原因)
        """
        now = time.time() if timestamp is None else timestamp

        if self._last_value is not None:
            if measurement < self._last_value:
                return (False, f"读数回退 (上次 {self._last_value}, 本次 {measurement})")

            dt = now - self._last_time
            limit = self.max_hourly_increase
            if dt > 0 and limit is not None and not math.isinf(limit):
                hourly = (measurement - self._last_value) * 3600 / dt
                if hourly > limit:
                    return (
                        False,
                        f"增长过快 (上次 {self._last_value}, 每小时 {hourly:.3f}, 上限 {limit})"
                    )

        self._last_value = measurement
        self._last_time = now
        return (True, "")

    @property
    def last_value(self) -> Optional[float]:
        """上次有效读数"""
        return self._last_value

    def reset(self):
        """重置校验器"""
        self._last_value = None
        self._last_time = None
