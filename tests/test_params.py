"""
Unit tests for the optimizer parameters.

Run with: pytest tests/test_params.py
"""

import os
import pytest
from min_curv_params import MinCurvatureParams, load_params

INPUTS_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "inputs")


class TestMinCurvatureParams:
    """Tests for parameter defaults and validation."""

    def test_defaults(self):
        """Default parameters are valid."""
        params = MinCurvatureParams()

        assert params.constant_system_matrix is False
        assert params.num_nearest <= params.num_points_evaluate
        assert params.shrink_margin >= 0.0

    def test_too_few_evaluation_points(self):
        """At least two boundary samples are required."""
        with pytest.raises(ValueError):
            MinCurvatureParams(num_points_evaluate=1, num_nearest=1)

    def test_too_many_neighbours(self):
        """More neighbours than samples are rejected."""
        with pytest.raises(ValueError):
            MinCurvatureParams(num_points_evaluate=10, num_nearest=11)

    def test_negative_shrink_margin(self):
        """Negative safety distance is rejected."""
        with pytest.raises(ValueError):
            MinCurvatureParams(shrink_margin=-0.1)

    def test_too_few_control_points(self):
        """Constant system matrix needs at least two control points."""
        with pytest.raises(ValueError):
            MinCurvatureParams(num_control_points=1)


class TestLoadParams:
    """Tests for reading parameters from INI files."""

    def write_ini(self, tmp_path, value):
        file_path = tmp_path / "params.ini"
        file_path.write_text("[OPTIMIZATION_OPTIONS]\noptim_opts_mincurv=" + value + "\n")
        return str(file_path)

    def test_partial_dict(self, tmp_path):
        """Given keys are set, the others keep their defaults."""
        params = load_params(self.write_ini(tmp_path, '{"num_nearest": 5, "verbose": True}'))

        assert params.num_nearest == 5
        assert params.verbose is True
        assert params.max_iterations == MinCurvatureParams().max_iterations

    def test_unknown_key(self, tmp_path):
        """Unknown parameters are reported."""
        with pytest.raises(ValueError):
            load_params(self.write_ini(tmp_path, '{"num_neighbours": 5}'))

    def test_malformed_value(self, tmp_path):
        """Values that are no python literals are rejected."""
        with pytest.raises(ValueError):
            load_params(self.write_ini(tmp_path, '{"num_nearest": five}'))

    def test_no_dict(self, tmp_path):
        """Option must hold a dictionary."""
        with pytest.raises(ValueError):
            load_params(self.write_ini(tmp_path, '[1, 2, 3]'))

    def test_missing_file(self, tmp_path):
        """Missing files raise an IOError."""
        with pytest.raises(IOError):
            load_params(str(tmp_path / "missing.ini"))

    def test_shipped_file(self):
        """Example parameter file can be loaded."""
        params = load_params(os.path.join(INPUTS_DIR, "min_curv.ini"))

        assert params.num_control_points == 25
        assert params.constant_system_matrix is True
        assert params.shrink_margin == 0.3
