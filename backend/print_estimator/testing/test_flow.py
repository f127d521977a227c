# testing/test_flow.py

import pytest

from print_estimator.core.common_types import ProcessSettings
from print_estimator.core.exceptions import ConfigurationError, InvalidFlowRateError, InvalidParameterError
from print_estimator.processes.print_3d import flow


def test_line_width_is_nozzle_times_factor():
    assert flow.line_width(0.4) == pytest.approx(0.48)
    assert flow.line_width(0.6) == pytest.approx(0.72)

def test_line_width_rejects_non_positive_nozzle():
    with pytest.raises(InvalidParameterError):
        flow.line_width(0.0)

def test_no_ceiling_means_no_derating():
    assert flow.speed_scaling_factor(0.6, 0.36, 100.0, None) == 1.0

def test_demand_below_ceiling_is_not_derated():
    # 0.2 * 0.48 * 100 = 9.6 mm³/s
    assert flow.speed_scaling_factor(0.4, 0.2, 100.0, 20.0) == 1.0

def test_demand_above_ceiling_is_derated():
    assert flow.speed_scaling_factor(0.4, 0.2, 100.0, 8.0) == pytest.approx(8.0 / 9.6)
    assert flow.speed_scaling_factor(0.6, 0.36, 100.0, 20.0) == pytest.approx(20.0 / 25.92)

@pytest.mark.parametrize("max_flow", [0.0, -5.0])
def test_non_positive_ceiling_is_a_configuration_error(max_flow):
    with pytest.raises(InvalidFlowRateError):
        flow.speed_scaling_factor(0.4, 0.2, 100.0, max_flow)
    assert issubclass(InvalidFlowRateError, ConfigurationError)

@pytest.mark.parametrize("max_flow", [2.0, 8.0, 15.0, 20.0])
def test_factor_non_increasing_in_layer_height(max_flow):
    previous = 1.0
    for layer in [0.08, 0.12, 0.16, 0.20, 0.28, 0.36, 0.5]:
        factor = flow.speed_scaling_factor(0.4, layer, 100.0, max_flow)
        assert 0 < factor <= 1
        assert factor <= previous + 1e-12
        previous = factor

@pytest.mark.parametrize("nozzle, layer", [(0.4, 0.2), (0.6, 0.28), (0.8, 0.36)])
def test_factor_non_increasing_in_infill_speed(nozzle, layer):
    previous = 1.0
    for speed in [20.0, 40.0, 60.0, 100.0, 150.0, 250.0, 400.0, 600.0]:
        factor = flow.speed_scaling_factor(nozzle, layer, speed, 15.0)
        assert 0 < factor <= previous + 1e-12
        previous = factor
    assert previous < 1.0

def test_factor_non_increasing_in_nozzle_diameter():
    factors = [flow.speed_scaling_factor(n, 0.2, 100.0, 10.0) for n in (0.25, 0.4, 0.6, 0.8, 1.0)]
    assert all(b <= a for a, b in zip(factors, factors[1:]))
    assert all(0 < f <= 1 for f in factors)

def test_effective_speeds_leave_travel_untouched():
    speeds = flow.effective_speeds(ProcessSettings(), 0.5)
    assert speeds.wall_mm_s == pytest.approx(35.0)
    assert speeds.infill_mm_s == pytest.approx(50.0)
    assert speeds.top_bottom_mm_s == pytest.approx(25.0)
    assert speeds.travel_mm_s == pytest.approx(200.0)
