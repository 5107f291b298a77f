"""
预处理模块

图像几何处理功能:
- 图像旋转: 校正摄像头安装角度
- 亮度计算: BT.601 整数近似
- 线段采样: 读取数码管段亮度
"""

from meterlcd.preprocessing.transform import (
    Point,
    Segment,
    rotate_image,
    luminance,
    line_points,
    sample_line,
)

__all__ = [
    "Point",
    "Segment",
    "rotate_image",
    "luminance",
    "line_points",
    "sample_line",
]
