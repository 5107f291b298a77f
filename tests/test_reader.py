"""
表计读取器与读数校验单元测试
"""

import os
from unittest.mock import patch

import pytest
import numpy as np

from meterlcd.config import MeasureConfig, MeterConfig
from meterlcd.errors import ReadError
from meterlcd.meter.reader import MeterReader, MeterReading
from meterlcd.meter.validate import RangeValidator, AccumulatorValidator


def _reader(decoder_config, measures, **kwargs) -> MeterReader:
    config = MeterConfig(decoder=decoder_config, label_digits=2, measures=measures, **kwargs)
    return MeterReader(config)


class TestRangeValidator:
    """范围校验器测试"""

    def test_in_range(self):
        """测试范围内"""
        validator = RangeValidator(0, 10)
        assert validator.validate(0) == (True, "")
        assert validator.validate(9.99)[0]

    def test_out_of_range(self):
        """测试下限含、上限不含"""
        validator = RangeValidator(0, 10)

        valid, reason = validator.validate(-0.1)
        assert not valid
        assert "下限" in reason

        valid, reason = validator.validate(10)
        assert not valid
        assert "上限" in reason

    def test_unbounded(self):
        """测试无限制"""
        validator = RangeValidator()
        assert validator.validate(-1e9)[0]
        assert validator.validate(1e9)[0]


class TestAccumulatorValidator:
    """累计值校验器测试"""

    def test_first_value(self):
        """测试首个读数总是有效"""
        validator = AccumulatorValidator(20.0)
        assert validator.validate(1000.0, timestamp=0)[0]
        assert validator.last_value == 1000.0

    def test_backwards(self):
        """测试读数回退"""
        validator = AccumulatorValidator(20.0)
        validator.validate(100.0, timestamp=0)

        valid, reason = validator.validate(99.0, timestamp=60)
        assert not valid
        assert "回退" in reason
        assert validator.last_value == 100.0

    def test_rate_limit(self):
        """测试每小时增量上限"""
        validator = AccumulatorValidator(20.0)
        validator.validate(100.0, timestamp=0)

        assert validator.validate(110.0, timestamp=3600)[0]
        valid, reason = validator.validate(140.0, timestamp=7200)
        assert not valid
        assert "增长过快" in reason
        assert validator.last_value == 110.0

    def test_same_timestamp(self):
        """测试时间间隔为 0 时不检查增量"""
        validator = AccumulatorValidator(1.0)
        validator.validate(100.0, timestamp=5)
        assert validator.validate(500.0, timestamp=5)[0]

    def test_unlimited(self):
        """测试无增量上限"""
        validator = AccumulatorValidator(float("inf"))
        validator.validate(0.0, timestamp=0)
        assert validator.validate(1e6, timestamp=1)[0]

    def test_reset(self):
        """测试重置"""
        validator = AccumulatorValidator(20.0)
        validator.validate(100.0, timestamp=0)
        validator.reset()

        assert validator.last_value is None
        assert validator.validate(1.0, timestamp=1)[0]


class TestParseNumber:
    """数值解析测试"""

    def test_plain(self):
        """测试普通数值"""
        assert MeterReader.parse_number(MeasureConfig(), "0123") == 123.0

    def test_decimal_point(self):
        """测试小数点"""
        assert MeterReader.parse_number(MeasureConfig(), "01.23") == pytest.approx(1.23)

    def test_scale(self):
        """测试换算比例"""
        assert MeterReader.parse_number(MeasureConfig(scale=100), "0123") == pytest.approx(1.23)

    def test_negative(self):
        """测试前导负号"""
        assert MeterReader.parse_number(MeasureConfig(scale=10), "-123") == pytest.approx(-12.3)
        assert MeterReader.parse_number(MeasureConfig(), "- 12") == -12.0

    def test_blank_digits(self):
        """测试空白位"""
        assert MeterReader.parse_number(MeasureConfig(), "  12") == 12.0

    def test_invalid(self):
        """测试无法解析"""
        with pytest.raises(ReadError, match="无效数值"):
            MeterReader.parse_number(MeasureConfig(), "1b2")
        with pytest.raises(ReadError):
            MeterReader.parse_number(MeasureConfig(), "    ")

    def test_rejects_float_syntax(self):
        """测试拒绝 float() 能解析但不是数码管数值的写法"""
        for text in ("nAn", "1E2", "1e2", "1.2.3", "inf", ".5", "1_000", "+12"):
            with pytest.raises(ReadError, match="无效数值"):
                MeterReader.parse_number(MeasureConfig(), text)

    def test_trailing_point(self):
        """测试末位小数点"""
        assert MeterReader.parse_number(MeasureConfig(), "12.") == 12.0


class TestMeterReader:
    """表计读取器测试"""

    def test_gauge(self, six_config, six_image):
        """测试瞬时值读数"""
        reader = _reader(six_config, {"EH": MeasureConfig(kind="gauge", max=100)})
        reading = reader.read(six_image("EH0123", dp=3), timestamp=42.0)

        assert isinstance(reading, MeterReading)
        assert reading.label == "EH"
        assert reading.value == pytest.approx(1.23)
        assert reading.text == "EH01.23"
        assert reading.timestamp == 42.0
        assert reader.last_result.text == "EH01.23"

    def test_scale_and_sign(self, six_config, six_image):
        """测试换算与负号"""
        reader = _reader(six_config, {"EH": MeasureConfig(kind="gauge", scale=10, min=-100)})
        reading = reader.read(six_image("EH-123"), timestamp=0)

        assert reading.value == pytest.approx(-12.3)

    def test_gauge_out_of_range(self, six_config, six_image):
        """测试超出范围"""
        reader = _reader(six_config, {"EH": MeasureConfig(kind="gauge", max=1)})
        with pytest.raises(ReadError, match="EH"):
            reader.read(six_image("EH0123", dp=3), timestamp=0)

    def test_unknown_label(self, six_config, six_image):
        """测试未知标签"""
        reader = _reader(six_config, {"EH": MeasureConfig()})
        with pytest.raises(ReadError, match="未知标签"):
            reader.read(six_image("HE0123"), timestamp=0)

    def test_invalid_digit(self, six_config, six_image):
        """测试存在无效数字"""
        reader = _reader(six_config, {"EH": MeasureConfig()})
        img = six_image("EH0123")
        img[10:16, 130:170] = 0      # 擦除第 2 位的上横

        with pytest.raises(ReadError, match="第 2 位"):
            reader.read(img, timestamp=0)

    def test_ignore(self, six_config, six_image):
        """测试忽略类读数"""
        reader = _reader(six_config, {"EH": MeasureConfig(kind="ignore")})
        assert reader.read(six_image("EH0123"), timestamp=0) is None

    def test_accum(self, six_config, six_image):
        """测试累计值回退与增量"""
        reader = _reader(six_config, {"EH": MeasureConfig(kind="accum", max=50)})

        assert reader.read(six_image("EH0200"), timestamp=0).value == 200.0
        with pytest.raises(ReadError, match="回退"):
            reader.read(six_image("EH0100"), timestamp=60)
        with pytest.raises(ReadError, match="增长过快"):
            reader.read(six_image("EH0300"), timestamp=3600)
        assert reader.read(six_image("EH0240"), timestamp=3600).value == 240.0

    def test_accum_rejects_letters(self, six_config, six_image):
        """测试字母读数被拒绝，不影响回退检查"""
        reader = _reader(six_config, {"EH": MeasureConfig(kind="accum", max=50)})

        assert reader.read(six_image("EH0200"), timestamp=0).value == 200.0
        with pytest.raises(ReadError, match="无效数值"):
            reader.read(six_image("EHnAn "), timestamp=10)
        with pytest.raises(ReadError, match="回退"):
            reader.read(six_image("EH0100"), timestamp=20)

    def test_rotate(self, six_config, six_image):
        """测试按配置旋转"""
        reader = _reader(six_config, {}, rotate=90)
        img = six_image("EH0123")
        out = reader.prepare(img)
        assert out.shape[0] == out.shape[1]

        reader = _reader(six_config, {})
        assert reader.prepare(img) is img


class TestRecalibrate:
    """自动重新校准测试"""

    def test_all_eights(self, six_config, six_image, tmp_path):
        """测试全 8 画面触发校准并保存"""
        path = str(tmp_path / "calibration.csv")
        six_config.calibration_file = path
        reader = _reader(six_config, {"CA": MeasureConfig(kind="calibrate")}, recalibrate=True)

        assert reader.read(six_image("CA8888"), timestamp=0) is None
        assert os.path.exists(path)
        assert all(s.calibrated for lv in reader.decoder.levels for s in lv.slots[:7])

    def test_rate_limited(self, six_config, six_image):
        """测试最小校准间隔"""
        reader = _reader(six_config, {"CA": MeasureConfig(kind="calibrate")}, recalibrate=True)
        img = six_image("CA8888")

        with patch.object(reader.decoder, "calibrate", wraps=reader.decoder.calibrate) as spy:
            reader.read(img, timestamp=0)
            reader.read(img, timestamp=100)
            assert spy.call_count == 1

            reader.read(img, timestamp=700)
            assert spy.call_count == 2
            assert spy.call_args[0][1] == "CA8888"

    def test_disabled(self, six_config, six_image):
        """测试未启用自动校准"""
        reader = _reader(six_config, {"CA": MeasureConfig(kind="calibrate")})

        with patch.object(reader.decoder, "calibrate") as spy:
            assert reader.read(six_image("CA8888"), timestamp=0) is None
            spy.assert_not_called()

    def test_not_all_eights(self, six_config, six_image):
        """测试非全 8 画面不校准"""
        reader = _reader(six_config, {"CA": MeasureConfig(kind="calibrate")}, recalibrate=True)

        with patch.object(reader.decoder, "calibrate") as spy:
            assert reader.read(six_image("CA8088"), timestamp=0) is None
            spy.assert_not_called()

    def test_calibrate_force(self, six_config, six_image):
        """测试强制校准"""
        reader = _reader(six_config, {})
        img = six_image("888888")

        assert reader.calibrate(img, "888888", timestamp=0)
        assert not reader.calibrate(img, "888888", timestamp=10)
        assert reader.calibrate(img, "888888", timestamp=10, force=True)
