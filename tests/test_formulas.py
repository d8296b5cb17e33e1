"""Tests for formulas.py - Calculation formulas."""

import math

import pytest

from vetlab.formulas import (
    DilutionPoint,
    InfusionRate,
    buffer_ph,
    buffer_ratio,
    celsius_to_fahrenheit,
    celsius_to_kelvin,
    convert_scaled,
    convert_temperature,
    convert_units,
    dilution_solve_c2,
    dilution_solve_v2,
    dose_total,
    fahrenheit_to_celsius,
    fahrenheit_to_kelvin,
    infusion_rate,
    infusion_volume,
    is_step_count,
    kelvin_to_celsius,
    kelvin_to_fahrenheit,
    mass_from_molarity,
    mass_from_percent,
    normalize_unit,
    serial_dilution,
    units_for,
)


class TestSolutionFormulas:
    """Tests for solution preparation formulas."""

    @pytest.mark.parametrize(
        "molarity,volume,mw",
        [(0.1, 100, 58.44), (1, 1000, 40), (0.5, 250, 180.16), (2, 0, 58.44)],
    )
    def test_mass_from_molarity(self, molarity, volume, mw):
        """Test mass = M * (V / 1000) * MW."""
        assert mass_from_molarity(molarity, volume, mw) == pytest.approx(
            molarity * (volume / 1000) * mw
        )

    def test_mass_from_molarity_saline(self):
        """Test 100 mL of 0.1 M NaCl needs 0.5844 g."""
        assert mass_from_molarity(0.1, 100, 58.44) == pytest.approx(0.5844)

    def test_mass_from_percent(self):
        """Test 5% w/v in 100 mL needs 5 g."""
        assert mass_from_percent(5, 100) == pytest.approx(5.0)

    @pytest.mark.parametrize("molarity,volume,mw", [(0.1, 100, 58.44), (0.15, 500, 74.55)])
    def test_molarity_matches_equivalent_percent(self, molarity, volume, mw):
        """Test a molar solution equals its % w/v equivalent (M * MW / 10)."""
        assert mass_from_percent(molarity * mw / 10, volume) == pytest.approx(
            mass_from_molarity(molarity, volume, mw)
        )


class TestDilution:
    """Tests for C1V1 = C2V2."""

    def test_solve_c2(self):
        """Test C2 = C1 * V1 / V2."""
        assert dilution_solve_c2(1, 100, 500) == pytest.approx(0.2)

    def test_solve_v2(self):
        """Test V2 = C1 * V1 / C2."""
        assert dilution_solve_v2(1, 100, 0.2) == pytest.approx(500)

    def test_zero_v2_rejected(self):
        """Test dividing by a zero V2 raises."""
        with pytest.raises(ValueError):
            dilution_solve_c2(1, 100, 0)

    def test_zero_c2_rejected(self):
        """Test dividing by a zero C2 raises."""
        with pytest.raises(ValueError):
            dilution_solve_v2(1, 100, 0)


class TestSerialDilution:
    """Tests for serial_dilution function."""

    def test_tenfold_series(self):
        """Test init=1, factor=10, steps=3 gives 1, 0.1, 0.01, 0.001."""
        points = serial_dilution(1, 10, 3)
        assert [p.step for p in points] == [0, 1, 2, 3]
        assert [p.concentration for p in points] == pytest.approx([1, 0.1, 0.01, 0.001])

    @pytest.mark.parametrize("steps", [0, 1, 6, 20])
    def test_length_is_steps_plus_one(self, steps):
        """Test the series has steps + 1 points."""
        assert len(serial_dilution(5, 2, steps)) == steps + 1

    def test_each_step_divides_by_factor(self):
        """Test point k+1 equals point k divided by the factor."""
        points = serial_dilution(3.5, 4, 5)
        assert points[0].concentration == 3.5
        for prev, nxt in zip(points, points[1:]):
            assert nxt.concentration == pytest.approx(prev.concentration / 4)

    def test_zero_steps(self):
        """Test zero steps returns only the stock."""
        assert serial_dilution(2, 10, 0) == [DilutionPoint(step=0, concentration=2.0)]

    def test_integral_float_steps_accepted(self):
        """Test a float with an integral value counts as a step count."""
        assert len(serial_dilution(1, 10, 2.0)) == 3

    @pytest.mark.parametrize("steps", [2.5, -1, -0.5])
    def test_bad_step_counts_rejected(self, steps):
        """Test fractional and negative step counts raise."""
        with pytest.raises(ValueError):
            serial_dilution(1, 10, steps)

    def test_zero_factor_rejected(self):
        """Test a zero dilution factor raises."""
        with pytest.raises(ValueError):
            serial_dilution(1, 0, 3)

    def test_point_to_dict(self):
        """Test point serialization uses x/y keys."""
        assert DilutionPoint(step=1, concentration=0.1).to_dict() == {"x": 1, "y": 0.1}

    def test_is_step_count(self):
        """Test step count checks."""
        assert is_step_count(0)
        assert is_step_count(3.0)
        assert not is_step_count(1.5)
        assert not is_step_count(-2)
        assert not is_step_count(True)


class TestDoseAndInfusion:
    """Tests for dose and infusion formulas."""

    def test_dose_example(self):
        """Test 5 mg/kg, 10 kg, 50 mg/mL over 60 min."""
        total = dose_total(5, 10)
        assert total == 50
        volume = infusion_volume(total, 50)
        assert volume == pytest.approx(1.0)
        rate = infusion_rate(volume, 60, 20)
        assert rate.ml_per_hr == pytest.approx(1.0)
        assert rate.drops_per_min == pytest.approx(1 * 20 / 60)

    def test_rate_is_dataclass(self):
        """Test infusion rate returns an InfusionRate."""
        assert isinstance(infusion_rate(10, 30, 15), InfusionRate)

    @pytest.mark.parametrize("concentration", [0, -5])
    def test_non_positive_concentration_rejected(self, concentration):
        """Test concentration must be positive."""
        with pytest.raises(ValueError):
            infusion_volume(50, concentration)

    @pytest.mark.parametrize("duration", [0, -10])
    def test_non_positive_duration_rejected(self, duration):
        """Test duration must be positive."""
        with pytest.raises(ValueError):
            infusion_rate(1, duration, 20)


class TestTemperature:
    """Tests for temperature conversion."""

    def test_directed_formulas(self):
        """Test the six directed conversions."""
        assert celsius_to_fahrenheit(100) == pytest.approx(212)
        assert fahrenheit_to_celsius(212) == pytest.approx(100)
        assert celsius_to_kelvin(0) == pytest.approx(273.15)
        assert kelvin_to_celsius(273.15) == pytest.approx(0)
        assert fahrenheit_to_kelvin(32) == pytest.approx(273.15)
        assert kelvin_to_fahrenheit(273.15) == pytest.approx(32)

    @pytest.mark.parametrize("value", [-40, 0, 37, 100])
    def test_round_trip(self, value):
        """Test F -> C -> F returns the input."""
        assert celsius_to_fahrenheit(fahrenheit_to_celsius(value)) == pytest.approx(value)

    def test_minus_forty_is_shared(self):
        """Test -40 is the same in both scales."""
        assert celsius_to_fahrenheit(-40) == pytest.approx(-40)

    def test_identity(self):
        """Test converting to the same unit returns the value."""
        assert convert_temperature(37, "°C", "°C") == 37

    def test_aliases(self):
        """Test ASCII unit spellings are accepted."""
        assert convert_temperature(37, "C", "F") == pytest.approx(98.6)
        assert convert_temperature(310.15, "k", "degC") == pytest.approx(37)


class TestScaledConversion:
    """Tests for mass, volume and molar conversion."""

    def test_mass(self):
        """Test 1000 mg is 1 g."""
        assert convert_scaled("mass", 1000, "mg", "g") == pytest.approx(1.0)

    def test_mass_kg_to_ug(self):
        """Test 1 kg is 1e9 ug."""
        assert convert_scaled("mass", 1, "kg", "ug") == pytest.approx(1e9)

    def test_volume(self):
        """Test 1 L is 1000 mL."""
        assert convert_scaled("volume", 1, "L", "mL") == pytest.approx(1000)

    def test_molar(self):
        """Test 2 mM is 2000 µM."""
        assert convert_scaled("molar", 2, "mM", "uM") == pytest.approx(2000)

    def test_temperature_is_not_scaled(self):
        """Test temperature is rejected by the scaled converter."""
        with pytest.raises(ValueError):
            convert_scaled("temperature", 1, "°C", "K")

    def test_convert_units_dispatch(self):
        """Test convert_units routes by category."""
        assert convert_units("temperature", 100, "°C", "°F") == pytest.approx(212)
        assert convert_units("volume", 500, "uL", "mL") == pytest.approx(0.5)


class TestUnits:
    """Tests for unit tables and normalization."""

    def test_units_for(self):
        """Test canonical unit lists."""
        assert units_for("mass") == ["kg", "g", "mg", "ug"]
        assert units_for("volume") == ["L", "mL", "uL"]
        assert units_for("temperature") == ["°C", "°F", "K"]
        assert units_for("molar") == ["M", "mM", "µM"]

    def test_unknown_category(self):
        """Test unknown categories raise."""
        with pytest.raises(ValueError):
            units_for("length")

    @pytest.mark.parametrize(
        "category,unit,expected",
        [
            ("mass", "MG", "mg"),
            ("mass", "mcg", "ug"),
            ("volume", "ml", "mL"),
            ("volume", "l", "L"),
            ("temperature", "f", "°F"),
            ("molar", "uM", "µM"),
            ("molar", "mM", "mM"),
            ("molar", "M", "M"),
        ],
    )
    def test_normalize(self, category, unit, expected):
        """Test alias normalization."""
        assert normalize_unit(category, unit) == expected

    def test_unknown_unit(self):
        """Test a unit from another category raises."""
        with pytest.raises(ValueError, match="Unknown mass unit"):
            normalize_unit("mass", "mL")


class TestBuffer:
    """Tests for Henderson-Hasselbalch formulas."""

    def test_buffer_ph(self):
        """Test pKa 7.2 with ratio 2 gives pH about 7.5."""
        assert buffer_ph(7.2, 2) == pytest.approx(7.2 + math.log10(2))

    def test_equal_ratio_gives_pka(self):
        """Test a 1:1 ratio gives pH = pKa."""
        assert buffer_ph(4.76, 1) == pytest.approx(4.76)

    def test_buffer_ratio(self):
        """Test ratio = 10 ** (pH - pKa)."""
        assert buffer_ratio(7.2, 8.2) == pytest.approx(10)

    @pytest.mark.parametrize("pka,ratio", [(7.2, 2), (4.76, 0.5), (9.25, 13), (2.1, 0.001)])
    def test_round_trip(self, pka, ratio):
        """Test ratio -> pH -> ratio returns the input."""
        assert buffer_ratio(pka, buffer_ph(pka, ratio)) == pytest.approx(ratio)

    @pytest.mark.parametrize("ratio", [0, -1])
    def test_non_positive_ratio_rejected(self, ratio):
        """Test ratio must be positive."""
        with pytest.raises(ValueError):
            buffer_ph(7.2, ratio)
