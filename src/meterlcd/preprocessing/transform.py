"""
几何变换与采样模块

功能：
- 图像旋转：以图像中心为轴任意角度旋转（顺时针为正）
- 亮度计算：BT.601 整数近似 Y = (77R + 150G + 29B) >> 8
- 线段采样：沿 Bresenham 直线计算平均亮度

用于校正摄像头安装角度，以及读取数码管各段的亮度
"""

import math
import cv2
import numpy as np
from typing import List, NamedTuple


class Point(NamedTuple):
    """图像坐标点"""
    x: int
    y: int


class Segment(NamedTuple):
    """采样线段（起点、终点）"""
    p0: Point
    p1: Point

    @property
    def centre(self) -> Point:
        """线段中点"""
        return Point((self.p0.x + self.p1.x) // 2, (self.p0.y + self.p1.y) // 2)

    def inside(self, width: int, height: int) -> bool:
        """线段是否完全位于图像内（端点在内则整条直线在内）"""
        return all(
            0 <= p.x < width and 0 <= p.y < height
            for p in (self.p0, self.p1)
        )

    def points(self) -> List[Point]:
        """线段经过的所有像素"""
        return line_points(self.p0, self.p1)


def rotate_image(image: np.ndarray, angle: float) -> np.ndarray:
    """
    以图像中心为轴旋转图像

    画布为能容纳任意角度旋转结果的最小正方形，边长
    ceil(sqrt(w² + h²)) + 1。原图居中放置后整体顺时针旋转，
    画布外区域填充为黑色（BGRA 图像则为透明）。

    Args:
        image: 输入图像 (灰度/BGR/BGRA)
        angle: 旋转角度（度），正值为顺时针

    Returns:
        旋转后的图像；角度为 0 时返回原图副本
    """
    if angle == 0:
        return image.copy()

    h, w = image.shape[:2]
    size = int(math.ceil(math.sqrt(w * w + h * h))) + 1

    # 原图居中放置
    canvas = np.zeros((size, size) + image.shape[2:], dtype=image.dtype)
    x0 = (size - w) // 2
    y0 = (size - h) // 2
    canvas[y0:y0 + h, x0:x0 + w] = image

    # OpenCV 正角度为逆时针
    centre = ((size - 1) / 2.0, (size - 1) / 2.0)
    matrix = cv2.getRotationMatrix2D(centre, -angle, 1.0)

    return cv2.warpAffine(
        canvas,
        matrix,
        (size, size),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=0
    )


def _luma(pixels: np.ndarray, color: bool) -> np.ndarray:
    """像素数组转亮度（color 为 True 时最后一维为 BGR(A) 通道）"""
    if not color:
        return pixels.astype(np.int32)

    px = pixels.astype(np.int32)
    b = px[..., 0]
    g = px[..., 1]
    r = px[..., 2]
    return (77 * r + 150 * g + 29 * b) >> 8


def _is_color(image: np.ndarray) -> bool:
    return image.ndim == 3 and image.shape[2] >= 3


def luminance(image: np.ndarray) -> np.ndarray:
    """
    计算图像亮度平面

    Args:
        image: 灰度图 (H, W) 或 BGR/BGRA 图像 (H, W, 3|4)

    Returns:
        亮度图 (H, W)，uint8
    """
    if image.ndim == 3 and image.shape[2] == 1:
        image = image[:, :, 0]

    if not _is_color(image):
        return image.astype(np.uint8, copy=True)

    return _luma(image, color=True).astype(np.uint8)


def line_points(p0: Point, p1: Point) -> List[Point]:
    """
    Bresenham 直线

    Args:
        p0: 起点
        p1: 终点

    Returns:
        从 p0 到 p1（含两端）经过的像素，每个像素只出现一次
    """
    x0, y0 = int(p0[0]), int(p0[1])
    x1, y1 = int(p1[0]), int(p1[1])

    dx = abs(x1 - x0)
    dy = -abs(y1 - y0)
    sx = 1 if x0 < x1 else -1
    sy = 1 if y0 < y1 else -1
    err = dx + dy

    points = []
    while True:
        points.append(Point(x0, y0))
        if x0 == x1 and y0 == y1:
            break
        e2 = 2 * err
        if e2 >= dy:
            err += dy
            x0 += sx
        if e2 <= dx:
            err += dx
            y0 += sy

    return points


def sample_line(image: np.ndarray, p0: Point, p1: Point) -> int:
    """
    沿直线采样平均亮度

    Args:
        image: 输入图像（灰度或 BGR）
        p0: 起点
        p1: 终点

    Returns:
        直线上像素亮度的算术平均值（向下取整，0-255），
        图像外的像素按 0 计入
    """
    points = line_points(p0, p1)
    xs = np.array([p.x for p in points], dtype=np.int64)
    ys = np.array([p.y for p in points], dtype=np.int64)

    h, w = image.shape[:2]
    inside = (xs >= 0) & (xs < w) & (ys >= 0) & (ys < h)

    total = 0
    if inside.any():
        pixels = image[ys[inside], xs[inside]]
        if image.ndim == 3 and image.shape[2] == 1:
            pixels = pixels[:, 0]
        total = int(_luma(pixels, color=_is_color(image)).sum())

    return total // len(points)
