"""
测试共享 Fixtures

合成七段数码管图像：段的笔画位置与 DigitTemplate 的默认几何一致
"""

import pytest
import numpy as np
import cv2
from typing import List, Sequence, Tuple, Union

from meterlcd.config import DecoderConfig, DigitConfig
from meterlcd.recognition.segments import char_to_mask


def segment_bars(
    bbox: Tuple[int, int, int, int],
    stroke: float = 0.1,
    top: float = 0.45,
    middle: float = 0.5
) -> List[Tuple[int, int, int, int]]:
    """各段笔画矩形 (x0, y0, x1, y1)，含右下角，顺序 TL, TM, TR, BR, BM, BL, MM"""
    x0, y0, x1, y1 = bbox
    w = x1 - x0
    h = y1 - y0
    sw = max(1, int(round(stroke * w)))
    sh = max(1, int(round(stroke * h)))
    th = int(top * h)
    my = y0 + int(middle * h) - sh // 2

    return [
        (x0, y0, x0 + sw - 1, y0 + th - 1),
        (x0, y0, x1 - 1, y0 + sh - 1),
        (x1 - sw, y0, x1 - 1, y0 + th - 1),
        (x1 - sw, y1 - th, x1 - 1, y1 - 1),
        (x0, y1 - sh, x1 - 1, y1 - 1),
        (x0, y1 - th, x0 + sw - 1, y1 - 1),
        (x0, my, x1 - 1, my + sh - 1),
    ]


def dp_bar(bbox: Tuple[int, int, int, int], stroke: float = 0.1) -> Tuple[int, int, int, int]:
    """小数点矩形（默认偏移：右下角外侧）"""
    x0, y0, x1, y1 = bbox
    sw = max(1, int(round(stroke * (x1 - x0))))
    sh = max(1, int(round(stroke * (y1 - y0))))
    cx = x1 + sw // 2
    cy = y1 - (sh // 2 + 1)
    half = max(1, sw // 2)
    return (cx - half, cy - 1, cx + half, cy + 1)


def render_digits(
    width: int,
    height: int,
    digits: Sequence[Tuple],
    on: int = 255,
    off: int = 0,
    channels: int = 1
) -> np.ndarray:
    """
    绘制合成数码管图像

    Args:
        width: 图像宽度
        height: 图像高度
        digits: (bbox, 字符或段掩码[, 小数点是否点亮]) 列表
        on: 点亮段的亮度
        off: 背景亮度
        channels: 1 为灰度，3 为 BGR

    Returns:
        图像
    """
    if channels == 1:
        img = np.full((height, width), off, dtype=np.uint8)
        color: Union[int, Tuple[int, int, int]] = on
    else:
        img = np.full((height, width, channels), off, dtype=np.uint8)
        color = (on,) * channels

    for item in digits:
        bbox, char = item[0], item[1]
        dp = item[2] if len(item) > 2 else False
        mask = char if isinstance(char, int) else char_to_mask(char)
        bars = segment_bars(bbox)
        for i, (x0, y0, x1, y1) in enumerate(bars):
            if mask & (1 << i):
                cv2.rectangle(img, (x0, y0), (x1, y1), color, -1)
        if dp:
            x0, y0, x1, y1 = dp_bar(bbox)
            cv2.rectangle(img, (x0, y0), (x1, y1), color, -1)

    return img


# 六位数码管布局：40x60 数字，间隔 20 像素（小数点位于间隔内）
SIX_BBOXES = [(10 + 60 * i, 10, 50 + 60 * i, 70) for i in range(6)]
SIX_SIZE = (370, 80)


@pytest.fixture
def draw_digits():
    """合成图像绘制函数"""
    return render_digits


@pytest.fixture
def six_bboxes():
    """六位数码管边界框"""
    return list(SIX_BBOXES)


@pytest.fixture
def single_config() -> DecoderConfig:
    """单个 100x60 数字"""
    return DecoderConfig(digits=[DigitConfig(bbox=(0, 0, 100, 60))])


@pytest.fixture
def six_config() -> DecoderConfig:
    """六位数字，第 3 位带小数点"""
    return DecoderConfig(digits=[
        DigitConfig(bbox=bbox, dp=(i == 3)) for i, bbox in enumerate(SIX_BBOXES)
    ])


@pytest.fixture
def six_image():
    """六位数码管图像绘制函数"""
    def _draw(text: str, on: int = 255, off: int = 0, dp: int = -1, channels: int = 3):
        digits = [
            (bbox, char, i == dp) for i, (bbox, char) in enumerate(zip(SIX_BBOXES, text))
        ]
        return render_digits(SIX_SIZE[0], SIX_SIZE[1], digits, on=on, off=off, channels=channels)
    return _draw
