"""
段亮度校准模块

每个数字的每一段（以及小数点）都保存一组自适应的亮度上下限：
- min: 该段熄灭时的亮度
- max: 该段点亮时的亮度

上下限各自记录是否已观测：某一侧第一次被观测时直接取采样值，
此后 min 只向下扩展、max 只向上扩展。两侧都观测过之后，
后续校准不会缩小区间。

判定阈值为 min + t * (max - min)，采样值严格大于阈值即视为点亮。
未校准时上下限为 (0, 255)。
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
import logging

from meterlcd.errors import CalibrationError
from meterlcd.recognition.segments import SLOTS, DECIMAL_POINT

logger = logging.getLogger(__name__)

DEFAULT_MIN = 0
DEFAULT_MAX = 255
DEFAULT_EPSILON = 1


@dataclass
class SegmentLevels:
    """单段亮度上下限"""
    min: int = DEFAULT_MIN
    max: int = DEFAULT_MAX
    seen_min: bool = False        # 是否观测过熄灭亮度
    seen_max: bool = False        # 是否观测过点亮亮度
    unreliable: bool = False      # 上下限冲突

    @property
    def calibrated(self) -> bool:
        """是否已参与过校准（任一侧）"""
        return self.seen_min or self.seen_max

    def threshold(self, fraction: float) -> float:
        """判定阈值"""
        return self.min + fraction * (self.max - self.min)

    def is_on(self, value: int, fraction: float) -> bool:
        """采样值是否判定为点亮"""
        return value > self.threshold(fraction)

    def observe_on(self, value: int):
        """记录一次点亮观测"""
        self.max = max(self.max, value) if self.seen_max else value
        self.seen_max = True

    def observe_off(self, value: int):
        """记录一次熄灭观测"""
        self.min = min(self.min, value) if self.seen_min else value
        self.seen_min = True

    def check(self, epsilon: int = DEFAULT_EPSILON) -> bool:
        """检查 min <= max - epsilon，不满足时标记为不可靠"""
        self.unreliable = self.min > self.max - epsilon
        return not self.unreliable

    def preset(self, low: int, high: int, epsilon: int = DEFAULT_EPSILON):
        """直接设置上下限（两侧均视为已观测）"""
        self.min = low
        self.max = high
        self.seen_min = True
        self.seen_max = True
        self.check(epsilon)

    def restore(self, low: int, high: int, epsilon: int = DEFAULT_EPSILON):
        """
        从缓存恢复上下限

        等于默认值的一侧视为未观测，下次校准时仍直接取采样值。
        """
        self.min = low
        self.max = high
        self.seen_min = low != DEFAULT_MIN
        self.seen_max = high != DEFAULT_MAX
        self.check(epsilon)

    def reset(self):
        """恢复未校准状态"""
        self.min = DEFAULT_MIN
        self.max = DEFAULT_MAX
        self.seen_min = False
        self.seen_max = False
        self.unreliable = False

    @property
    def span(self) -> int:
        return self.max - self.min


@dataclass
class DigitLevels:
    """单个数字 7 段 + 小数点的亮度上下限"""
    slots: List[SegmentLevels] = field(
        default_factory=lambda: [SegmentLevels() for _ in range(SLOTS)]
    )

    def __getitem__(self, slot: int) -> SegmentLevels:
        return self.slots[slot]

    def __len__(self) -> int:
        return len(self.slots)

    @property
    def min(self) -> List[int]:
        return [s.min for s in self.slots]

    @property
    def max(self) -> List[int]:
        return [s.max for s in self.slots]

    def preset(self, low: int, high: int, epsilon: int = DEFAULT_EPSILON):
        """所有段设为同一上下限"""
        for s in self.slots:
            s.preset(low, high, epsilon)

    def reset(self):
        for s in self.slots:
            s.reset()


@dataclass
class CalibrationReport:
    """一次校准的结果汇总"""
    updated: List[int] = field(default_factory=list)              # 已更新的数字
    rejected: Dict[int, str] = field(default_factory=dict)        # 被拒绝的数字及原因
    unreliable: List[Tuple[int, int]] = field(default_factory=list)  # (数字, 段) 上下限冲突

    @property
    def ok(self) -> bool:
        """校准是否完全成功"""
        return not self.rejected and not self.unreliable

    def summary(self) -> str:
        parts = [f"更新 {len(self.updated)} 位"]
        if self.rejected:
            parts.append(
                "拒绝 " + ", ".join(f"#{d}: {r}" for d, r in sorted(self.rejected.items()))
            )
        if self.unreliable:
            parts.append(
                "冲突 " + ", ".join(f"#{d}/{s}" for d, s in self.unreliable)
            )
        return "; ".join(parts)


def parse_expected(expected: str) -> List[Tuple[str, bool]]:
    """
    拆分校准字符串

    每个数字对应一个字符，字符后紧跟的 "." 表示该位小数点点亮，
    例如 "123.45" -> [("1", False), ("2", False), ("3", True), ("4", False), ("5", False)]

    Args:
        expected: 校准字符串

    Returns:
        (字符, 小数点是否点亮) 列表
    """
    tokens: List[Tuple[str, bool]] = []
    for char in expected:
        if char == DECIMAL_POINT and tokens and not tokens[-1][1] \
                and tokens[-1][0] != DECIMAL_POINT:
            tokens[-1] = (tokens[-1][0], True)
        else:
            tokens.append((char, False))
    return tokens


def check_token_count(tokens: List[Tuple[str, bool]], digit_count: int):
    """校准字符串位数必须与数字数量一致"""
    if len(tokens) != digit_count:
        raise CalibrationError(
            f"位数不匹配 (校准字符串: {len(tokens)}, 数字: {digit_count})"
        )


def calibrate_levels(
    levels: DigitLevels,
    samples: Dict[int, int],
    mask: int,
    epsilon: int = DEFAULT_EPSILON
) -> List[int]:
    """
    用一组已知状态的采样值更新上下限

    Args:
        levels: 待更新的上下限
        samples: 段位置 -> 采样值（只包含实际采样的段）
        mask: 应当点亮的段位掩码（位 7 为小数点）
        epsilon: 上下限最小间隔

    Returns:
        出现冲突的段位置列表
    """
    conflicts = []
    for slot, value in sorted(samples.items()):
        seg = levels[slot]
        if mask & (1 << slot):
            seg.observe_on(value)
        else:
            seg.observe_off(value)
        if not seg.check(epsilon):
            conflicts.append(slot)
    return conflicts


def widest(
    current: Optional[Tuple[int, int]],
    low: int,
    high: int
) -> Tuple[int, int]:
    """合并两个区间，取最宽范围"""
    if current is None:
        return (low, high)
    return (min(current[0], low), max(current[1], high))
