#!/usr/bin/env python3
"""
MeterLCD 示例 03: 诊断叠加图

功能说明:
- 在图像副本上绘制每个数字的边界框和各段采样位置
- 绿色为点亮、红色为熄灭、黄色为校准不可靠
- 用于调整配置中的边界框和比例参数

依赖:
- opencv-python-headless
- numpy

运行方法:
    python examples/03_mark_samples.py
    python examples/03_mark_samples.py meter.json frame.png overlay.png
"""

import logging
import os
import sys
import tempfile

import numpy as np
import cv2

from meterlcd import DecoderConfig, DigitConfig, LcdDecoder, LcdError, load_config
from meterlcd.preprocessing import rotate_image


def create_test_image() -> np.ndarray:
    """创建两位模拟数码管 "47"，并旋转 0.8 度模拟安装误差"""
    img = np.zeros((80, 130, 3), dtype=np.uint8)
    white = (255, 255, 255)

    # "4": TL, TR, BR, MM
    cv2.rectangle(img, (10, 10), (13, 36), white, -1)
    cv2.rectangle(img, (46, 10), (49, 36), white, -1)
    cv2.rectangle(img, (46, 43), (49, 69), white, -1)
    cv2.rectangle(img, (10, 37), (49, 42), white, -1)

    # "7": TM, TR, BR
    cv2.rectangle(img, (70, 10), (109, 15), white, -1)
    cv2.rectangle(img, (106, 10), (109, 36), white, -1)
    cv2.rectangle(img, (106, 43), (109, 69), white, -1)

    return rotate_image(img, 0.8)


def overlay_example():
    """叠加图示例"""
    print("=" * 50)
    print("MeterLCD 诊断叠加图示例")
    print("=" * 50)

    image = create_test_image()
    size = image.shape[0]
    offset = ((size - 130) // 2, (size - 80) // 2)
    print(f"\n1. 模拟图像: {image.shape}，数字偏移 {offset}")

    config = DecoderConfig(
        digits=[DigitConfig(bbox=(10, 10, 50, 70)), DigitConfig(bbox=(70, 10, 110, 70))],
        offset=offset,
    )
    decoder = LcdDecoder(config)
    print(f"2. 解码结果: {decoder.decode(image).text!r}")

    line_path = os.path.join(tempfile.gettempdir(), "meterlcd_lines.png")
    fill_path = os.path.join(tempfile.gettempdir(), "meterlcd_fill.png")
    cv2.imwrite(line_path, decoder.mark_samples(image))
    cv2.imwrite(fill_path, decoder.mark_samples(image, fill=True))
    print(f"3. 采样线叠加图: {line_path}")
    print(f"   采样块叠加图: {fill_path}")

    states = {}
    for a in decoder.annotations(image):
        if a.slot is not None:
            states[a.state] = states.get(a.state, 0) + 1
    print(f"4. 各状态段数: {states}")


def overlay_file(config_path: str, image_path: str, output: str, fill: bool = False) -> int:
    """为图像文件生成叠加图"""
    config = load_config(config_path)
    image = cv2.imread(image_path)
    if image is None:
        print(f"无法读取图像: {image_path}")
        return 1

    if config.rotate:
        image = rotate_image(image, config.rotate)

    decoder = LcdDecoder(config.decoder)
    cv2.imwrite(output, decoder.mark_samples(image, fill=fill))
    print(f"叠加图已保存: {output}")
    return 0


def main(argv) -> int:
    logging.basicConfig(level=logging.INFO)

    try:
        if len(argv) >= 4:
            return overlay_file(argv[1], argv[2], argv[3], fill="--fill" in argv[4:])
        overlay_example()
    except LcdError as e:
        print(f"错误: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
