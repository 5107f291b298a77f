#!/usr/bin/env python3
"""
MeterLCD 示例 01: 解码数码管图像

功能说明:
- 从 JSON 配置创建解码器（未指定时使用内置的六位布局）
- 读取图像文件（未指定时生成模拟图像）
- 输出每一位的解码结果

依赖:
- opencv-python-headless
- numpy

运行方法:
    python examples/01_decode_image.py
    python examples/01_decode_image.py meter.json frame.png
"""

import logging
import sys

import numpy as np
import cv2

from meterlcd import DecoderConfig, DigitConfig, LcdDecoder, LcdError, load_config

# 六位数字布局：40x60，间隔 20 像素，第 3 位带小数点
BBOXES = [(10 + 60 * i, 10, 50 + 60 * i, 70) for i in range(6)]

# 各字符点亮的笔画 (TL, TM, TR, BR, BM, BL, MM)
PATTERNS = {
    "0": "1111110", "1": "0011000", "2": "0110111", "3": "0111101",
    "4": "1011001", "5": "1101101", "6": "1101111", "7": "0111000",
    "8": "1111111", "9": "1111101", " ": "0000000", "-": "0000001",
}


def create_test_image(text: str = "012345", dp: int = 3) -> np.ndarray:
    """
    创建模拟的数码管图像

    Args:
        text: 六位显示内容
        dp: 小数点所在位，-1 为无小数点

    Returns:
        BGR 图像
    """
    img = np.zeros((80, 370, 3), dtype=np.uint8)
    img[:] = (30, 30, 30)
    color = (80, 230, 80)  # 绿色数码管

    for i, (char, (x0, y0, x1, y1)) in enumerate(zip(text, BBOXES)):
        sw, sh, th = 4, 6, 27
        my = y0 + 30 - sh // 2
        bars = [
            (x0, y0, x0 + sw - 1, y0 + th - 1),
            (x0, y0, x1 - 1, y0 + sh - 1),
            (x1 - sw, y0, x1 - 1, y0 + th - 1),
            (x1 - sw, y1 - th, x1 - 1, y1 - 1),
            (x0, y1 - sh, x1 - 1, y1 - 1),
            (x0, y1 - th, x0 + sw - 1, y1 - 1),
            (x0, my, x1 - 1, my + sh - 1),
        ]
        for lit, (bx0, by0, bx1, by1) in zip(PATTERNS[char], bars):
            if lit == "1":
                cv2.rectangle(img, (bx0, by0), (bx1, by1), color, -1)
        if i == dp:
            cv2.rectangle(img, (x1, y1 - 5), (x1 + 4, y1 - 3), color, -1)

    return img


def default_config() -> DecoderConfig:
    """内置的六位布局"""
    return DecoderConfig(digits=[
        DigitConfig(bbox=bbox, dp=(i == 3)) for i, bbox in enumerate(BBOXES)
    ])


def decode_example(config: DecoderConfig, image: np.ndarray):
    """解码并打印结果"""
    print("=" * 50)
    print("MeterLCD 解码示例")
    print("=" * 50)

    decoder = LcdDecoder(config)
    print(f"\n1. 解码器就绪: {len(decoder)} 位数字")
    print(f"   图像尺寸: {image.shape}")

    print("\n2. 解码...")
    result = decoder.decode(image)

    print("\n3. 逐位结果:")
    print("-" * 40)
    print(f"{'位':^4} | {'字符':^6} | {'掩码':^6} | {'有效':^6}")
    print("-" * 40)
    for i, d in enumerate(result.digits):
        print(f"{i:^4} | {d.text!r:^6} | 0x{d.mask:02X}   | {str(d.valid):^6}")
        if d.error:
            print(f"       {d.error}")
    print("-" * 40)

    print(f"\n4. 拼接结果: {result.text!r}")
    if not result.valid:
        print(f"   无效数字: {result.invalid}")


def main(argv) -> int:
    logging.basicConfig(level=logging.INFO)

    try:
        if len(argv) >= 3:
            config = load_config(argv[1]).decoder
            image = cv2.imread(argv[2])
            if image is None:
                print(f"无法读取图像: {argv[2]}")
                return 1
        else:
            config = default_config()
            image = create_test_image("012345", dp=3)

        decode_example(config, image)
    except LcdError as e:
        print(f"错误: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
