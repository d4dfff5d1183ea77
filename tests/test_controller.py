import pytest

from babysitter.core.errors import NoValidReadings
from babysitter.core.units import c_to_f, f_to_c
from babysitter.domain import controller
from babysitter.domain.models import ActionKind

from conftest import make_reading


def test_average_ignores_missing_temperatures():
    readings = [make_reading("a", 68.0), make_reading("b", None), None, make_reading("c", 71.0)]
    valid = controller.valid_readings(readings)

    assert [r.source for r in valid] == ["a", "c"]
    assert controller.average_temperature(valid) == pytest.approx(69.5)


def test_average_of_nothing_raises():
    with pytest.raises(NoValidReadings):
        controller.average_temperature([])


def test_decide_heat_reason_encodes_margin():
    d = controller.decide(68.0, 70.0, 1.5)
    assert d.action is ActionKind.HEAT
    assert d.reason == "Avg temp 68.0°F is 2.0° below target"


def test_decide_cool():
    d = controller.decide(71.6, 70.0, 1.5)
    assert d.action is ActionKind.COOL
    assert "1.6° above target" in d.reason


@pytest.mark.parametrize("avg", [69.0, 68.6, 71.0, 70.0])
def test_decide_inside_band_maintains(avg):
    d = controller.decide(avg, 70.0, 1.5)
    assert d.action is ActionKind.MAINTAIN
    assert "within 1.5° of target" in d.reason


def test_decide_band_edges_are_strict():
    assert controller.decide(68.5, 70.0, 1.5).action is ActionKind.MAINTAIN
    assert controller.decide(71.5, 70.0, 1.5).action is ActionKind.MAINTAIN
    assert controller.decide(68.4, 70.0, 1.5).action is ActionKind.HEAT


def test_forced_heat_setpoint():
    assert controller.forced_heat_setpoint(65.0) == 90.0
    assert controller.forced_heat_setpoint(80.0) == 95.0


def test_forced_cool_setpoint():
    assert controller.forced_cool_setpoint(75.0) == 50.0
    assert controller.forced_cool_setpoint(60.0) == 45.0


def test_forcing_margin_checks():
    assert controller.needs_heat_forcing(None, 65.0)
    assert controller.needs_heat_forcing(66.0, 65.0)
    assert not controller.needs_heat_forcing(67.0, 65.0)

    assert controller.needs_cool_forcing(None, 75.0)
    assert controller.needs_cool_forcing(74.0, 75.0)
    assert not controller.needs_cool_forcing(73.0, 75.0)


def test_unit_conversion():
    assert c_to_f(20.0) == pytest.approx(68.0)
    assert f_to_c(212.0) == pytest.approx(100.0)
    assert c_to_f(None) is None
    assert f_to_c(None) is None
    assert c_to_f(0.0) == pytest.approx(32.0)
