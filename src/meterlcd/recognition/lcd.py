"""
七段数码管解码器

功能：
- 按数字模板采样各段亮度
- 基于逐段校准的上下限判定段的亮灭
- 段掩码转字符，识别小数点
- 已知读数图像校准、校准缓存读写
- 诊断叠加图（采样线/采样块）

解码器本身不合并数字、不移动小数点、不解释正负号，这些由调用方处理。
"""

import cv2
import numpy as np
from typing import Dict, List, Optional, Tuple
from dataclasses import dataclass, field
import logging

from meterlcd.config import DecoderConfig
from meterlcd.preprocessing.transform import Point, luminance
from meterlcd.recognition import persistence
from meterlcd.recognition.calibration import (
    CalibrationReport,
    DigitLevels,
    calibrate_levels,
    check_token_count,
    parse_expected,
)
from meterlcd.errors import (
    CalibrationError,
    ConfigError,
    DecodeOutOfBounds,
    LcdError,
    UnrecognisedMask,
)
from meterlcd.recognition.segments import (
    DECIMAL_POINT,
    DP_SLOT,
    PLACEHOLDER,
    SEGMENTS,
    char_to_mask,
    mask_to_char,
)
from meterlcd.recognition.template import DigitScan, DigitTemplate

logger = logging.getLogger(__name__)

# 叠加图颜色 (BGR)
COLOR_ON = (0, 255, 0)
COLOR_OFF = (0, 0, 255)
COLOR_UNRELIABLE = (0, 255, 255)
COLOR_BBOX = (255, 255, 255)


@dataclass
class DigitResult:
    """单个数字的解码结果"""
    text: str                                 # 解码字符（可能带 "." 后缀）
    valid: bool                               # 段掩码是否可识别
    mask: int                                 # 段掩码
    samples: List[int] = field(default_factory=list)  # 7 段原始亮度
    dp: bool = False                          # 小数点是否点亮
    dp_sample: Optional[int] = None           # 小数点亮度
    fixed: bool = False                       # 是否为固定数字
    error: Optional[LcdError] = None          # 失败原因

    @property
    def char(self) -> str:
        """不含小数点的字符"""
        return self.text[:-1] if self.dp else self.text


@dataclass
class DecodeResult:
    """整幅图像的解码结果"""
    digits: List[DigitResult] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.digits)

    def __getitem__(self, index: int) -> DigitResult:
        return self.digits[index]

    @property
    def text(self) -> str:
        """各数字字符串直接拼接"""
        return "".join(d.text for d in self.digits)

    @property
    def strings(self) -> List[str]:
        return [d.text for d in self.digits]

    @property
    def masks(self) -> List[int]:
        return [d.mask for d in self.digits]

    @property
    def samples(self) -> List[List[int]]:
        return [d.samples for d in self.digits]

    @property
    def invalid(self) -> int:
        """无效数字个数"""
        return sum(1 for d in self.digits if not d.valid)

    @property
    def valid(self) -> bool:
        """是否全部有效"""
        return self.invalid == 0

    def to_dict(self) -> Dict:
        """转换为字典（便于日志记录）"""
        return {
            "text": self.text,
            "valid": self.valid,
            "digits": [
                {
                    "text": d.text,
                    "valid": d.valid,
                    "mask": d.mask,
                    "samples": list(d.samples),
                    "error": str(d.error) if d.error else None,
                }
                for d in self.digits
            ],
        }


@dataclass
class Annotation:
    """诊断叠加图元素"""
    kind: str                          # "line" / "rect" / "bbox"
    p0: Point
    p1: Point
    color: Tuple[int, int, int]        # BGR
    digit: int
    slot: Optional[int] = None         # 段位置，bbox 为 None
    state: str = "unknown"             # on / off / unreliable / unknown


class LcdDecoder:
    """
    七段数码管解码器

    使用示例:
    ```python
    config = DecoderConfig(digits=[
        DigitConfig(bbox=(0, 0, 100, 60)),
        DigitConfig(bbox=(120, 0, 220, 60), dp=True),
    ])
    decoder = LcdDecoder(config)

    # 用已知读数的图像校准
    decoder.calibrate(image, "88")
    decoder.save_calibration("calibration.csv")

    result = decoder.decode(image)
    print(result.text, [d.valid for d in result.digits])
    ```
    """

    def __init__(self, config: DecoderConfig):
        """
        初始化解码器

        Args:
            config: 解码器配置

        Raises:
            ConfigError: 配置无效或几何不合法
            PersistenceError: 配置的校准文件存在但内容无效
        """
        if not config.digits:
            raise ConfigError("至少需要配置一个数字")
        if not 0 < config.threshold < 1:
            raise ConfigError(f"threshold {config.threshold} 超出 (0, 1)")
        if config.epsilon < 0:
            raise ConfigError(f"epsilon {config.epsilon} 不能为负")

        self.config = config
        xoff, yoff = config.offset
        templates = []
        for i, d in enumerate(config.digits):
            x0, y0, x1, y1 = d.bbox
            t = DigitTemplate.create(
                (x0 + xoff, y0 + yoff, x1 + xoff, y1 + yoff),
                stroke=d.stroke,
                top=d.top,
                middle=d.middle,
                fixed=d.fixed,
                dp=d.dp,
                dp_offset=d.dp_offset,
                index=i,
            )
            if config.image_size is not None and not t.inside(*config.image_size):
                raise ConfigError(
                    f"数字 {i}: 采样点超出图像范围 {config.image_size[0]}x{config.image_size[1]}"
                )
            if d.preset is not None:
                t.levels.preset(d.preset[0], d.preset[1], config.epsilon)
            templates.append(t)

        self._templates: Tuple[DigitTemplate, ...] = tuple(templates)

        if persistence.calibration_exists(config.calibration_file):
            self.load_calibration(config.calibration_file)
        elif config.calibration_file:
            logger.info(f"校准文件不存在，使用默认上下限: {config.calibration_file}")

    @property
    def templates(self) -> Tuple[DigitTemplate, ...]:
        """数字模板（顺序固定）"""
        return self._templates

    @property
    def levels(self) -> List[DigitLevels]:
        """各数字的校准上下限"""
        return [t.levels for t in self._templates]

    @property
    def threshold(self) -> float:
        return self.config.threshold

    def __len__(self) -> int:
        return len(self._templates)

    def _prepare(self, image: np.ndarray) -> np.ndarray:
        """转为亮度图，反射式 LCD 取反"""
        gray = luminance(image)
        if self.config.invert:
            gray = 255 - gray
        return gray

    def scan(self, image: np.ndarray) -> List[DigitScan]:
        """
        采样所有数字

        Args:
            image: 输入图像 (灰度/BGR)

        Returns:
            每个数字的采样结果
        """
        gray = self._prepare(image)
        return [t.scan(gray) for t in self._templates]

    def _classify(self, template: DigitTemplate, scan: DigitScan) -> int:
        mask = 0
        for i in range(SEGMENTS):
            if template.levels[i].is_on(scan.samples[i], self.threshold):
                mask |= 1 << i
        return mask

    def _dp_on(self, template: DigitTemplate, scan: DigitScan) -> bool:
        return scan.dp is not None and template.levels[DP_SLOT].is_on(scan.dp, self.threshold)

    def decode(self, image: np.ndarray) -> DecodeResult:
        """
        解码图像中的所有数字

        单个数字失败（采样越界、掩码无法识别）只影响该数字。

        Args:
            image: 输入图像 (灰度/BGR)

        Returns:
            解码结果，长度等于数字数量
        """
        gray = self._prepare(image)
        h, w = gray.shape[:2]
        result = DecodeResult()

        for t in self._templates:
            scan = t.scan(gray)

            if t.fixed is not None:
                dp = scan.in_bounds and self._dp_on(t, scan)
                result.digits.append(DigitResult(
                    text=t.fixed + (DECIMAL_POINT if dp else ""),
                    valid=True,
                    mask=t.fixed_mask,
                    samples=scan.samples,
                    dp=dp,
                    dp_sample=scan.dp,
                    fixed=True,
                ))
                continue

            if not scan.in_bounds:
                result.digits.append(DigitResult(
                    text=PLACEHOLDER,
                    valid=False,
                    mask=0,
                    samples=scan.samples,
                    error=DecodeOutOfBounds(t.index, w, h),
                ))
                continue

            mask = self._classify(t, scan)
            char = mask_to_char(mask)
            error = None
            if char is None:
                char = PLACEHOLDER
                error = UnrecognisedMask(t.index, mask)

            dp = self._dp_on(t, scan)
            result.digits.append(DigitResult(
                text=char + (DECIMAL_POINT if dp else ""),
                valid=error is None,
                mask=mask,
                samples=scan.samples,
                dp=dp,
                dp_sample=scan.dp,
                error=error,
            ))

        return result

    def calibrate(self, image: np.ndarray, expected: str) -> CalibrationReport:
        """
        用已知读数的图像校准各段上下限

        Args:
            image: 输入图像
            expected: 图像上显示的字符，每个数字一个字符，
                      字符后的 "." 表示该位小数点点亮

        Returns:
            校准报告

        Raises:
            CalibrationError: 位数不匹配（不做任何更新）；或存在未知字符、
                              上下限冲突（其余数字已更新，报告见 error.report）
        """
        tokens = parse_expected(expected)
        check_token_count(tokens, len(self._templates))

        gray = self._prepare(image)
        report = CalibrationReport()

        for t, (char, dp) in zip(self._templates, tokens):
            mask = char_to_mask(char)
            if mask is None:
                report.rejected[t.index] = f"未知字符 {char!r}"
                continue
            if dp and t.dp is None:
                report.rejected[t.index] = "该位没有小数点"
                continue
            if t.fixed is not None and char != t.fixed:
                report.rejected[t.index] = f"固定字符为 {t.fixed!r}，校准字符为 {char!r}"
                continue

            scan = t.scan(gray)
            if not scan.in_bounds:
                report.rejected[t.index] = "采样点超出图像范围"
                continue
            if dp and scan.dp is None:
                report.rejected[t.index] = "小数点超出图像范围"
                continue

            samples = {i: scan.samples[i] for i in t.sampled}
            if scan.dp is not None:
                samples[DP_SLOT] = scan.dp
                if dp:
                    mask |= 1 << DP_SLOT

            conflicts = calibrate_levels(t.levels, samples, mask, self.config.epsilon)
            report.updated.append(t.index)
            report.unreliable.extend((t.index, s) for s in conflicts)

        logger.debug(f"校准 {expected!r}: {report.summary()}")
        if not report.ok:
            raise CalibrationError(f"校准未完全成功: {report.summary()}", report)
        return report

    def save_calibration(self, path: Optional[str] = None):
        """
        保存校准数据

        Args:
            path: 文件路径，默认使用配置中的 calibration_file
        """
        path = path or self.config.calibration_file
        if not path:
            raise ConfigError("未指定校准文件")
        persistence.save_calibration(path, self.levels)

    def load_calibration(self, path: Optional[str] = None) -> int:
        """
        加载校准数据，替换当前全部上下限

        Args:
            path: 文件路径，默认使用配置中的 calibration_file

        Returns:
            读取的段数
        """
        path = path or self.config.calibration_file
        if not path:
            raise ConfigError("未指定校准文件")
        return persistence.load_calibration(path, self.levels, self.config.epsilon)

    def _state(self, template: DigitTemplate, slot: int, value: Optional[int]) -> str:
        levels = template.levels[slot]
        if levels.unreliable:
            return "unreliable"
        if value is None:
            return "unknown"
        return "on" if levels.is_on(value, self.threshold) else "off"

    def annotations(
        self,
        image: Optional[np.ndarray] = None,
        fill: bool = False
    ) -> List[Annotation]:
        """
        生成诊断叠加图的矢量元素

        Args:
            image: 用于判定亮灭状态的图像；为 None 时状态为 unknown
            fill: True 时每段为以线段中点为中心的小方块，否则为采样线

        Returns:
            叠加元素列表
        """
        scans = self.scan(image) if image is not None else None
        colors = {
            "on": COLOR_ON,
            "off": COLOR_OFF,
            "unreliable": COLOR_UNRELIABLE,
            "unknown": COLOR_BBOX,
        }

        items = []
        for t in self._templates:
            (x0, y0), (x1, y1) = t.bbox
            items.append(Annotation(
                kind="bbox",
                p0=Point(x0, y0),
                p1=Point(x1 - 1, y1 - 1),
                color=COLOR_BBOX,
                digit=t.index,
            ))

            scan = scans[t.index] if scans is not None else None
            half = max(1, min(t.stroke) // 2)
            for slot, seg in t.sample_sites().items():
                value = None
                if scan is not None and scan.in_bounds:
                    value = scan.dp if slot == DP_SLOT else scan.samples[slot]
                state = self._state(t, slot, value)
                if fill:
                    c = seg.centre
                    p0 = Point(c.x - half, c.y - half)
                    p1 = Point(c.x + half, c.y + half)
                    kind = "rect"
                else:
                    p0, p1 = seg.p0, seg.p1
                    kind = "line"
                items.append(Annotation(
                    kind=kind,
                    p0=p0,
                    p1=p1,
                    color=colors[state],
                    digit=t.index,
                    slot=slot,
                    state=state,
                ))
        return items

    def mark_samples(self, image: np.ndarray, fill: bool = False) -> np.ndarray:
        """
        在图像副本上绘制采样位置

        绿色为点亮，红色为熄灭，黄色为校准不可靠，白色为数字边界框。

        Args:
            image: 输入图像（不会被修改）
            fill: True 时绘制实心小方块，否则绘制采样线

        Returns:
            BGR 叠加图
        """
        if image.ndim == 2:
            canvas = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
        elif image.shape[2] == 4:
            canvas = cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
        else:
            canvas = image.copy()

        for a in self.annotations(image, fill=fill):
            if a.kind == "line":
                cv2.line(canvas, tuple(a.p0), tuple(a.p1), a.color, 1)
            elif a.kind == "rect":
                cv2.rectangle(canvas, tuple(a.p0), tuple(a.p1), a.color, -1)
            else:
                cv2.rectangle(canvas, tuple(a.p0), tuple(a.p1), a.color, 1)

        return canvas
