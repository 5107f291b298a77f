#!/usr/bin/env python3
"""
MeterLCD 示例 02: 校准并保存

功能说明:
- 用一幅已知读数的图像（通常为表头自检时的全 8 画面）校准各段亮度
- 对比校准前后暗淡数码管的解码结果
- 保存校准缓存文件

依赖:
- opencv-python-headless
- numpy

运行方法:
    python examples/02_calibrate.py
    python examples/02_calibrate.py meter.json frame.png "8888.88" calibration.csv
"""

import logging
import os
import sys
import tempfile

import numpy as np
import cv2

from meterlcd import CalibrationError, DecoderConfig, DigitConfig, LcdDecoder, LcdError, load_config

BBOXES = [(10 + 60 * i, 10, 50 + 60 * i, 70) for i in range(6)]

PATTERNS = {
    "0": "1111110", "1": "0011000", "2": "0110111", "3": "0111101",
    "4": "1011001", "5": "1101101", "6": "1101111", "7": "0111000",
    "8": "1111111", "9": "1111101",
}


def create_dim_image(text: str, level: int = 90) -> np.ndarray:
    """创建低亮度的模拟数码管图像（灰度）"""
    img = np.full((80, 370), 25, dtype=np.uint8)

    for char, (x0, y0, x1, y1) in zip(text, BBOXES):
        bars = [
            (x0, y0, x0 + 3, y0 + 26),
            (x0, y0, x1 - 1, y0 + 5),
            (x1 - 4, y0, x1 - 1, y0 + 26),
            (x1 - 4, y1 - 27, x1 - 1, y1 - 1),
            (x0, y1 - 6, x1 - 1, y1 - 1),
            (x0, y1 - 27, x0 + 3, y1 - 1),
            (x0, y0 + 27, x1 - 1, y0 + 32),
        ]
        for lit, (bx0, by0, bx1, by1) in zip(PATTERNS[char], bars):
            if lit == "1":
                cv2.rectangle(img, (bx0, by0), (bx1, by1), level, -1)

    return img


def calibrate_example():
    """校准示例"""
    print("=" * 50)
    print("MeterLCD 校准示例")
    print("=" * 50)

    config = DecoderConfig(digits=[DigitConfig(bbox=bbox) for bbox in BBOXES])
    decoder = LcdDecoder(config)

    reading = create_dim_image("072519")

    print("\n1. 未校准解码（默认上下限 0-255）:")
    print(f"   {decoder.decode(reading).text!r}")

    print("\n2. 用全 8 画面校准...")
    report = decoder.calibrate(create_dim_image("888888"), "888888")
    print(f"   {report.summary()}")
    print(f"   第 0 位上限: {decoder.levels[0].max[:7]}")

    print("\n3. 校准后解码:")
    print(f"   {decoder.decode(reading).text!r}")

    path = os.path.join(tempfile.gettempdir(), "meterlcd_calibration.csv")
    decoder.save_calibration(path)
    print(f"\n4. 校准数据已保存: {path}")

    print("\n" + "=" * 50)
    print("示例完成")
    print("=" * 50)


def calibrate_file(config_path: str, image_path: str, expected: str, output: str) -> int:
    """用图像文件校准并保存"""
    config = load_config(config_path).decoder
    image = cv2.imread(image_path)
    if image is None:
        print(f"无法读取图像: {image_path}")
        return 1

    decoder = LcdDecoder(config)
    try:
        report = decoder.calibrate(image, expected)
    except CalibrationError as e:
        # 其余数字已更新，仍然保存
        print(f"校准未完全成功: {e}")
        report = e.report
        if report is None:
            return 1

    decoder.save_calibration(output)
    print(f"{report.summary()}，已保存到 {output}")
    return 0 if report.ok else 1


def main(argv) -> int:
    logging.basicConfig(level=logging.INFO)

    try:
        if len(argv) >= 5:
            return calibrate_file(argv[1], argv[2], argv[3], argv[4])
        calibrate_example()
    except LcdError as e:
        print(f"错误: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
