"""
数字模板

根据单个数字的边界框和三个比例参数（笔画宽度、上半部高度、中横位置）
计算 7 段和小数点的采样线段。边界框为半开区间 [x0, x1) x [y0, y1)。
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
import numpy as np

from meterlcd.preprocessing.transform import Point, Segment, sample_line
from meterlcd.recognition.calibration import DigitLevels
from meterlcd.errors import ConfigError
from meterlcd.recognition.segments import (
    SEGMENTS,
    DP_SLOT,
    char_to_mask,
    segments_on,
)

DEFAULT_STROKE = 0.1
DEFAULT_TOP = 0.45
DEFAULT_MIDDLE = 0.5


@dataclass
class DigitScan:
    """单个数字的采样结果"""
    samples: List[int]                   # 7 段平均亮度（未采样的段为 0）
    dp: Optional[int] = None             # 小数点亮度
    in_bounds: bool = True               # 采样点是否都在图像内


@dataclass
class DigitTemplate:
    """
    单个数字的采样几何

    使用示例:
    ```python
    t = DigitTemplate.create((0, 0, 100, 60))
    scan = t.scan(gray_image)
    ```
    """
    index: int
    bbox: Tuple[Point, Point]
    segments: List[Segment]
    stroke: Tuple[int, int]              # 笔画宽度 (横向, 纵向) 像素
    dp: Optional[Segment] = None
    fixed: Optional[str] = None
    levels: DigitLevels = field(default_factory=DigitLevels)

    @classmethod
    def create(
        cls,
        bbox: Tuple[int, int, int, int],
        stroke: float = DEFAULT_STROKE,
        top: float = DEFAULT_TOP,
        middle: float = DEFAULT_MIDDLE,
        fixed: Optional[str] = None,
        dp: bool = False,
        dp_offset: Optional[Tuple[int, int]] = None,
        index: int = 0
    ) -> "DigitTemplate":
        """
        由边界框创建数字模板

        Args:
            bbox: 边界框 (x0, y0, x1, y1)，右下角不含
            stroke: 笔画宽度占边长的比例
            top: 上半部竖段高度占总高度的比例
            middle: 中横位置占总高度的比例
            fixed: 固定显示的字符（如首位恒为 "1"）
            dp: 是否有小数点
            dp_offset: 小数点中心相对于右下角 (x1, y1) 的偏移
            index: 数字序号

        Raises:
            ConfigError: 边界框为空或几何参数不合法
        """
        if len(bbox) != 4:
            raise ConfigError(f"数字 {index}: 边界框需要 4 个值，实际 {len(bbox)}")
        x0, y0, x1, y1 = (int(v) for v in bbox)
        w = x1 - x0
        h = y1 - y0
        if w <= 0 or h <= 0:
            raise ConfigError(f"数字 {index}: 边界框为空 {tuple(bbox)}")
        if not 0 < stroke < 0.5:
            raise ConfigError(f"数字 {index}: 笔画比例 {stroke} 超出 (0, 0.5)")
        if not 0 < top < 1 or not 0 < middle < 1:
            raise ConfigError(f"数字 {index}: 高度比例超出 (0, 1)")
        if fixed is not None and char_to_mask(fixed) is None:
            raise ConfigError(f"数字 {index}: 未知的固定字符 {fixed!r}")

        sw = max(1, int(round(stroke * w)))
        sh = max(1, int(round(stroke * h)))
        th = int(top * h)

        xl = x0 + sw // 2
        xr = x1 - 1 - sw // 2
        hx0 = x0 + sw
        hx1 = x1 - 1 - sw
        yt = y0 + sh // 2
        yb = y1 - 1 - sh // 2
        ym = y0 + int(middle * h)
        upper = (y0 + sh, y0 + th - 1)
        lower = (y1 - th, y1 - 1 - sh)

        # 顺序必须与段码表一致: TL, TM, TR, BR, BM, BL, MM
        segments = [
            Segment(Point(xl, upper[0]), Point(xl, upper[1])),
            Segment(Point(hx0, yt), Point(hx1, yt)),
            Segment(Point(xr, upper[0]), Point(xr, upper[1])),
            Segment(Point(xr, lower[0]), Point(xr, lower[1])),
            Segment(Point(hx0, yb), Point(hx1, yb)),
            Segment(Point(xl, lower[0]), Point(xl, lower[1])),
            Segment(Point(hx0, ym), Point(hx1, ym)),
        ]
        for i, seg in enumerate(segments):
            if seg.p0.x > seg.p1.x or seg.p0.y > seg.p1.y:
                raise ConfigError(
                    f"数字 {index}: 边界框 {tuple(bbox)} 太小，无法放置第 {i} 段"
                )

        dp_seg = None
        if dp:
            dx, dy = dp_offset if dp_offset is not None else (sw // 2, -(sh // 2 + 1))
            cx = x1 + int(dx)
            cy = y1 + int(dy)
            length = max(1, sw // 2)
            start = cx - (length - 1) // 2
            dp_seg = Segment(Point(start, cy), Point(start + length - 1, cy))

        return cls(
            index=index,
            bbox=(Point(x0, y0), Point(x1, y1)),
            segments=segments,
            stroke=(sw, sh),
            dp=dp_seg,
            fixed=fixed,
        )

    @property
    def fixed_mask(self) -> Optional[int]:
        """固定字符的段掩码"""
        if self.fixed is None:
            return None
        return char_to_mask(self.fixed)

    @property
    def sampled(self) -> List[int]:
        """需要采样的段（固定数字只采样其点亮的段）"""
        if self.fixed is not None:
            return segments_on(self.fixed_mask)
        return list(range(SEGMENTS))

    def sample_sites(self) -> Dict[int, Segment]:
        """采样位置 -> 线段（含小数点）"""
        sites = {i: self.segments[i] for i in self.sampled}
        if self.dp is not None:
            sites[DP_SLOT] = self.dp
        return sites

    def inside(self, width: int, height: int) -> bool:
        """需要采样的段是否都位于图像内（不含小数点）"""
        return all(self.segments[i].inside(width, height) for i in self.sampled)

    def dp_inside(self, width: int, height: int) -> bool:
        """小数点采样位置是否位于图像内"""
        return self.dp is not None and self.dp.inside(width, height)

    def scan(self, image: np.ndarray) -> DigitScan:
        """
        采样各段亮度

        Args:
            image: 亮度图或 BGR 图像

        Returns:
            采样结果；七段超出图像范围时 in_bounds 为 False 且不采样。
            小数点位于图像外时不采样（dp 为 None），按熄灭处理。
        """
        h, w = image.shape[:2]
        samples = [0] * SEGMENTS
        if not self.inside(w, h):
            return DigitScan(samples=samples, in_bounds=False)

        for i in self.sampled:
            seg = self.segments[i]
            samples[i] = sample_line(image, seg.p0, seg.p1)

        dp_value = None
        if self.dp_inside(w, h):
            dp_value = sample_line(image, self.dp.p0, self.dp.p1)

        return DigitScan(samples=samples, dp=dp_value)

