"""
配置定义

数码管解码器与表计读取器的配置数据类，以及 JSON 配置文件读写。

配置文件示例:
```json
{
  "decoder": {
    "threshold": 0.5,
    "offset": [0, 0],
    "calibration_file": "calibration.csv",
    "digits": [
      {"bbox": [10, 10, 60, 90], "fixed": "1"},
      {"bbox": [70, 10, 120, 90], "dp": true}
    ]
  },
  "rotate": 1.5,
  "label_digits": 4,
  "measures": {
    "EHtL": {"kind": "accum", "scale": 100.0, "max": 20.0}
  }
}
```
"""

from dataclasses import dataclass, field, asdict, fields
from typing import Any, Dict, List, Optional, Tuple
import json
import logging

from meterlcd.errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass
class DigitConfig:
    """单个数字配置"""
    bbox: Tuple[int, int, int, int]              # 边界框 (x0, y0, x1, y1)
    stroke: float = 0.1                          # 笔画宽度比例
    top: float = 0.45                            # 上半部高度比例
    middle: float = 0.5                          # 中横位置比例
    fixed: Optional[str] = None                  # 固定字符
    dp: bool = False                             # 是否有小数点
    dp_offset: Optional[Tuple[int, int]] = None  # 小数点相对右下角偏移
    preset: Optional[Tuple[int, int]] = None     # 预设 (min, max)


@dataclass
class DecoderConfig:
    """解码器配置"""
    digits: List[DigitConfig] = field(default_factory=list)
    threshold: float = 0.5                       # 点亮判定比例 (0-1)
    epsilon: int = 1                             # 上下限最小间隔
    offset: Tuple[int, int] = (0, 0)             # 所有数字的整体偏移
    invert: bool = False                         # 暗段为点亮（反射式 LCD）
    image_size: Optional[Tuple[int, int]] = None # 图像尺寸 (宽, 高)，用于构造时检查
    calibration_file: Optional[str] = None       # 校准缓存文件

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DecoderConfig":
        """
        从字典创建

        Raises:
            ConfigError: 字段缺失、类型错误或存在未知字段
        """
        if not isinstance(data, dict):
            raise ConfigError("解码器配置必须是字典")
        _check_keys(data, cls, "decoder")

        digits_data = data.get("digits")
        if not isinstance(digits_data, list) or not digits_data:
            raise ConfigError("至少需要配置一个数字 (digits)")
        digits = [_digit_from_dict(i, d) for i, d in enumerate(digits_data)]

        try:
            config = cls(
                digits=digits,
                threshold=float(data.get("threshold", 0.5)),
                epsilon=int(data.get("epsilon", 1)),
                offset=_pair(data.get("offset", (0, 0)), "offset"),
                invert=bool(data.get("invert", False)),
                image_size=_pair(data.get("image_size"), "image_size"),
                calibration_file=data.get("calibration_file"),
            )
        except ConfigError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigError(f"解码器配置无效: {e}") from e

        if not 0 < config.threshold < 1:
            raise ConfigError(f"threshold {config.threshold} 超出 (0, 1)")
        return config


@dataclass
class MeasureConfig:
    """表计读数类型配置"""
    kind: str = "gauge"           # gauge / accum / ignore / calibrate
    scale: float = 1.0            # 读数除以该值得到实际数值
    min: float = 0.0              # 有效最小值 (gauge)
    max: float = float("inf")     # 有效最大值 (gauge) 或每小时最大增量 (accum)


MEASURE_KINDS = ("gauge", "accum", "ignore", "calibrate")


@dataclass
class MeterConfig:
    """表计读取器配置"""
    decoder: DecoderConfig
    rotate: float = 0.0                          # 图像旋转角度（顺时针）
    label_digits: int = 4                        # 前几位为标签
    measures: Dict[str, MeasureConfig] = field(default_factory=dict)
    calibrate_interval: float = 600.0            # 自动重新校准最小间隔（秒）
    recalibrate: bool = False                    # 显示全 8 时自动重新校准

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MeterConfig":
        """从字典创建"""
        if not isinstance(data, dict):
            raise ConfigError("表计配置必须是字典")
        _check_keys(data, cls, "meter")
        if "decoder" not in data:
            raise ConfigError("缺少 decoder 配置")

        measures = {}
        for label, m in (data.get("measures") or {}).items():
            if not isinstance(m, dict):
                raise ConfigError(f"读数 {label!r} 的配置必须是字典")
            _check_keys(m, MeasureConfig, f"measures.{label}")
            try:
                measure = MeasureConfig(**m)
                measure.scale = float(measure.scale)
                measure.min = float(measure.min)
                measure.max = float(measure.max)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"读数 {label!r} 配置无效: {e}") from e
            if measure.kind not in MEASURE_KINDS:
                raise ConfigError(f"读数 {label!r} 类型未知: {measure.kind}")
            if measure.scale == 0:
                raise ConfigError(f"读数 {label!r} 的 scale 不能为 0")
            measures[label] = measure

        try:
            config = cls(
                decoder=DecoderConfig.from_dict(data["decoder"]),
                rotate=float(data.get("rotate", 0.0)),
                label_digits=int(data.get("label_digits", 4)),
                measures=measures,
                calibrate_interval=float(data.get("calibrate_interval", 600.0)),
                recalibrate=bool(data.get("recalibrate", False)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"表计配置无效: {e}") from e

        if not 0 <= config.label_digits <= len(config.decoder.digits):
            raise ConfigError(f"label_digits {config.label_digits} 超出数字数量")
        return config


def _check_keys(data: Dict[str, Any], cls, where: str):
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"{where}: 未知字段 {sorted(unknown)}")


def _pair(value, name: str) -> Optional[Tuple[int, int]]:
    if value is None:
        return None
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ConfigError(f"{name} 需要 2 个整数")
    return (int(value[0]), int(value[1]))


def _digit_from_dict(index: int, data: Any) -> DigitConfig:
    if not isinstance(data, dict):
        raise ConfigError(f"数字 {index}: 配置必须是字典")
    _check_keys(data, DigitConfig, f"digits[{index}]")

    bbox = data.get("bbox")
    if not isinstance(bbox, (list, tuple)) or len(bbox) != 4:
        raise ConfigError(f"数字 {index}: bbox 需要 4 个整数")

    # dp 可以是布尔值，也可以直接给出偏移量
    dp = data.get("dp", False)
    dp_offset = data.get("dp_offset")
    if isinstance(dp, (list, tuple)):
        dp_offset = dp
        dp = True

    fixed = data.get("fixed")
    if fixed is not None:
        fixed = str(fixed)

    try:
        return DigitConfig(
            bbox=tuple(int(v) for v in bbox),
            stroke=float(data.get("stroke", 0.1)),
            top=float(data.get("top", 0.45)),
            middle=float(data.get("middle", 0.5)),
            fixed=fixed,
            dp=bool(dp),
            dp_offset=_pair(dp_offset, f"digits[{index}].dp_offset"),
            preset=_pair(data.get("preset"), f"digits[{index}].preset"),
        )
    except ConfigError:
        raise
    except (TypeError, ValueError) as e:
        raise ConfigError(f"数字 {index}: 配置无效: {e}") from e


def load_config(path: str) -> MeterConfig:
    """
    从 JSON 文件加载表计配置

    文件顶层可以是完整的表计配置，也可以只包含解码器配置
    （含 digits 字段），此时没有标签位，其他参数取默认值。

    Raises:
        ConfigError: 文件无法读取或内容无效
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError(f"无法读取配置文件 {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"配置文件 {path} 不是有效的 JSON: {e}") from e

    if isinstance(data, dict) and "digits" in data:
        data = {"decoder": data, "label_digits": 0}

    config = MeterConfig.from_dict(data)
    logger.info(f"配置已加载: {path} ({len(config.decoder.digits)} 位数字)")
    return config


def save_config(config: MeterConfig, path: str):
    """保存表计配置到 JSON 文件"""
    data = config.to_dict()
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
