"""Tests for input/output mapping."""

import math

import pytest

from src.environment.adapter import IOAdapter
from src.system.retina import TickResult


@pytest.fixture
def adapter():
    return IOAdapter()


class TestInputMapping:
    def test_normalized_range(self, adapter):
        assert adapter.intensity_from_normalized(0.0) == pytest.approx(0.1)
        assert adapter.intensity_from_normalized(1.0) == pytest.approx(1e4)
        assert adapter.intensity_from_normalized(0.6) == pytest.approx(100.0)

    def test_normalized_clamped(self, adapter):
        assert adapter.intensity_from_normalized(-3.0) == pytest.approx(0.1)
        assert adapter.intensity_from_normalized(7.0) == pytest.approx(1e4)
        assert adapter.intensity_from_normalized(math.nan) == pytest.approx(0.1)

    def test_adc(self, adapter):
        assert adapter.intensity_from_adc(0) == pytest.approx(0.1)
        assert adapter.intensity_from_adc(4095) == pytest.approx(1e4)
        assert adapter.intensity_from_adc(5000) == pytest.approx(1e4)

    def test_inverse(self, adapter):
        assert adapter.normalized_from_intensity(adapter.intensity_from_normalized(0.25)) == pytest.approx(0.25)
        assert adapter.normalized_from_intensity(0.0) == 0.0
        assert adapter.normalized_from_intensity(1e9) == 1.0

    def test_custom_mapping(self):
        adapter = IOAdapter(log_offset=0.0, log_span=7.0, adc_max=1023)
        assert adapter.intensity_from_adc(1023) == pytest.approx(1e7)

    @pytest.mark.parametrize("setting", ["log_span", "adc_max", "pwm_max", "blend_span"])
    def test_invalid_scale(self, setting):
        with pytest.raises(ValueError, match=setting):
            IOAdapter(**{setting: 0})


class TestOutputMapping:
    def test_normalized_response(self, adapter):
        assert adapter.normalized_response(-20.0, 20.0) == 0.0
        assert adapter.normalized_response(-10.0, 20.0) == pytest.approx(0.5)
        assert adapter.normalized_response(0.0, 20.0) == 1.0
        assert adapter.normalized_response(-25.0, 20.0) == 0.0
        assert adapter.normalized_response(3.0, 20.0) == 1.0

    def test_blend_weights(self, adapter):
        assert adapter.blend_weights(0.1) == pytest.approx((1.0, 0.0))
        assert adapter.blend_weights(10.0) == pytest.approx((0.5, 0.5))
        assert adapter.blend_weights(1000.0) == pytest.approx((0.0, 1.0))
        assert adapter.blend_weights(1e6) == pytest.approx((0.0, 1.0))
        assert adapter.blend_weights(0.0) == (1.0, 0.0)

    def test_blend_weights_sum_to_one(self, adapter):
        for intensity in (0.01, 0.5, 3.0, 42.0, 999.0):
            rod, cone = adapter.blend_weights(intensity)
            assert rod + cone == pytest.approx(1.0)

    def test_combined_response(self, adapter):
        # rod half suppressed, cone dark, equal weights
        combined = adapter.combined_response(10.0, -10.0, 20.0, -30.0, 30.0)
        assert combined == pytest.approx(0.25)

    def test_led_duty(self, adapter):
        assert adapter.led_duty(0.0) == 0
        assert adapter.led_duty(1.0) == 255
        assert adapter.led_duty(0.2) == 51
        assert adapter.led_duty(2.0) == 255
        assert adapter.led_duty(-1.0) == 0

    def test_log_line(self):
        result = TickResult(
            time=0.02,
            intensity=600.0,
            rod_current=-12.5,
            cone_current=-29.9,
            rod_response=0.375,
            cone_response=0.003,
            combined=0.1,
        )
        assert IOAdapter.format_log_line(result) == "0.020,600,-12.5000,-29.9000,0.1000"
