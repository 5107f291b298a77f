"""
校准缓存读写

文件为逐行文本，每行一个段:

    <数字序号>,<段序号>,<min>,<max>

段序号 0-6 为七段（TL, TM, TR, BR, BM, BL, MM），7 为小数点。
行顺序任意；重复行取最宽范围；空行和 # 注释行忽略。
任何一行格式错误或越界都会导致整个文件被拒绝。
"""

from typing import Dict, Iterable, List, Tuple
import logging
import os
import re

from meterlcd.recognition.calibration import DigitLevels, widest
from meterlcd.errors import PersistenceError
from meterlcd.recognition.segments import SLOTS

logger = logging.getLogger(__name__)

MIN_LEVEL = 0
MAX_LEVEL = 255

Entries = Dict[Tuple[int, int], Tuple[int, int]]

INT_PATTERN = re.compile(r"-?[0-9]+")


def dump_calibration(levels: Iterable[DigitLevels]) -> str:
    """
    序列化校准数据（包含未校准的段）

    Args:
        levels: 各数字的上下限

    Returns:
        缓存文件文本
    """
    lines = []
    for d, digit in enumerate(levels):
        for s, seg in enumerate(digit.slots):
            lines.append(f"{d},{s},{seg.min},{seg.max}")
    return "\n".join(lines) + "\n" if lines else ""


def _parse_int(field: str) -> int:
    """只接受十进制整数，拒绝 "+5"、"1_0" 之类 int() 能解析的写法"""
    field = field.strip()
    if not INT_PATTERN.fullmatch(field):
        raise ValueError(field)
    return int(field)


def parse_calibration(text: str, digit_count: int) -> Entries:
    """
    解析校准缓存文本

    Args:
        text: 缓存文件文本
        digit_count: 数字数量

    Returns:
        (数字, 段) -> (min, max)

    Raises:
        PersistenceError: 格式错误或索引越界
    """
    entries: Entries = {}
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue

        fields = line.split(",")
        if len(fields) != 4:
            raise PersistenceError(f"需要 4 个字段，实际 {len(fields)}", lineno)
        try:
            digit, slot, low, high = (_parse_int(f) for f in fields)
        except ValueError:
            raise PersistenceError(f"无法解析 {line!r}", lineno)

        if not 0 <= digit < digit_count:
            raise PersistenceError(f"数字序号 {digit} 超出范围 [0, {digit_count})", lineno)
        if not 0 <= slot < SLOTS:
            raise PersistenceError(f"段序号 {slot} 超出范围 [0, {SLOTS})", lineno)
        for value in (low, high):
            if not MIN_LEVEL <= value <= MAX_LEVEL:
                raise PersistenceError(f"亮度值 {value} 超出范围 [0, 255]", lineno)

        entries[(digit, slot)] = widest(entries.get((digit, slot)), low, high)

    return entries


def apply_calibration(levels: List[DigitLevels], entries: Entries, epsilon: int):
    """用解析结果替换全部上下限，文件中没有的段恢复为未校准"""
    for digit in levels:
        digit.reset()
    for (d, s), (low, high) in entries.items():
        levels[d][s].restore(low, high, epsilon)


def save_calibration(path: str, levels: List[DigitLevels]):
    """
    保存校准数据到文件

    Args:
        path: 文件路径
        levels: 各数字的上下限
    """
    with open(path, "w", encoding="utf-8") as f:
        f.write(dump_calibration(levels))
    logger.info(f"校准数据已保存: {path} ({len(levels)} 位)")


def load_calibration(path: str, levels: List[DigitLevels], epsilon: int) -> int:
    """
    从文件加载校准数据，替换内存中的全部上下限

    文件有误时内存数据保持不变。

    Args:
        path: 文件路径
        levels: 各数字的上下限（原地更新）
        epsilon: 上下限最小间隔

    Returns:
        读取的段数

    Raises:
        PersistenceError: 文件无法读取、格式错误或索引越界
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise PersistenceError(f"无法读取 {path}: {e}")

    entries = parse_calibration(text, len(levels))
    apply_calibration(levels, entries, epsilon)
    logger.info(f"校准数据已加载: {path} ({len(entries)} 条)")
    return len(entries)


def calibration_exists(path: str) -> bool:
    return bool(path) and os.path.exists(path)
