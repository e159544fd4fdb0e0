"""
Unit tests for the spline system matrix and its inverse.

Run with: pytest tests/test_spline_system.py
"""

import pytest
import numpy as np
from spline_system import (
    calc_system_matrix,
    calc_system_inverse,
    calc_rhs_layout,
    calc_rhs_vectors,
    solve_coefficients,
)


class TestSystemMatrix:
    """Tests for the layout of the system matrix."""

    def test_size(self):
        """Matrix has four rows and columns per control point."""
        M = calc_system_matrix(5)

        assert M.shape == (20, 20)

    def test_fixed_rows(self):
        """First and last rows hold the boundary conditions."""
        M = calc_system_matrix(4).toarray()

        np.testing.assert_array_equal(M[0, :8], [1, 0, 0, 0, 0, 0, 0, 0])
        np.testing.assert_array_equal(M[1, :8], [0, 0, 2, 0, 0, 0, 0, 0])
        np.testing.assert_array_equal(M[2, :8], [1, 1, 1, 1, 0, 0, 0, 0])
        np.testing.assert_array_equal(M[3, :8], [0, 1, 2, 3, 0, -1, 0, 0])
        np.testing.assert_array_equal(M[4, :8], [0, 0, 1, 3, 0, 0, -1, 0])
        np.testing.assert_array_equal(M[13, 12:], [1, 0, 0, 0])
        np.testing.assert_array_equal(M[14, 12:], [0, 0, 2, 0])
        np.testing.assert_array_equal(M[15, 12:], [0, 0, 0, 1])

    def test_inner_rows(self):
        """Inner pieces couple to the next piece at offsets +5 and +6."""
        M = calc_system_matrix(4).toarray()
        j = 4

        np.testing.assert_array_equal(M[j + 1, j:j + 7], [1, 0, 0, 0, 0, 0, 0])
        np.testing.assert_array_equal(M[j + 2, j:j + 7], [1, 1, 1, 1, 0, 0, 0])
        np.testing.assert_array_equal(M[j + 3, j:j + 7], [0, 1, 2, 3, 0, -1, 0])
        np.testing.assert_array_equal(M[j + 4, j:j + 7], [0, 0, 1, 3, 0, 0, -1])

    def test_number_of_entries(self):
        """Matrix is sparse: 16 fixed entries plus 12 per inner piece."""
        for no_points in (2, 3, 7):
            M = calc_system_matrix(no_points)
            assert M.count_nonzero() == 16 + 12 * (no_points - 2)

    def test_too_few_points(self):
        """Less than two control points are rejected."""
        with pytest.raises(ValueError):
            calc_system_matrix(1)


class TestSystemInverse:
    """Tests for the inverse of the system matrix."""

    @pytest.mark.parametrize("no_points", [3, 4, 5, 10, 25])
    def test_inverse_identity(self, no_points):
        """System matrix times its inverse is the identity."""
        M = calc_system_matrix(no_points)
        M_inv = calc_system_inverse(no_points)

        np.testing.assert_allclose(M @ M_inv, np.eye(4 * no_points), atol=1e-9)

    def test_two_points(self):
        """Smallest system is regular as well."""
        M_inv = calc_system_inverse(2)

        assert M_inv.shape == (8, 8)
        assert np.all(np.isfinite(M_inv))

    def test_dense_result(self):
        """Inverse is returned as dense array."""
        assert isinstance(calc_system_inverse(4), np.ndarray)


class TestRightHandSide:
    """Tests for the placement of control points in the right hand side."""

    def test_layout(self):
        """Rows and control point indices follow the piece structure."""
        rows, cols = calc_rhs_layout(4)

        np.testing.assert_array_equal(rows, [0, 2, 5, 6, 9, 10, 13])
        np.testing.assert_array_equal(cols, [0, 1, 1, 2, 2, 3, 3])

    def test_vectors(self):
        """Coordinates end up in the layout rows, all other rows are zero."""
        points = np.array([[0.0, 10.0], [1.0, 11.0], [2.0, 12.0]])
        q_x, q_y = calc_rhs_vectors(points)

        assert q_x.shape == (12,)
        assert q_x[0] == 0.0 and q_x[2] == 1.0 and q_x[5] == 1.0 and q_x[6] == 2.0 and q_x[9] == 2.0
        assert q_y[0] == 10.0 and q_y[9] == 12.0
        assert np.count_nonzero(q_y) == 5


class TestCoefficients:
    """Tests for solving the spline system."""

    def test_straight_line(self):
        """Equally spaced collinear points lead to linear pieces."""
        points = np.column_stack((np.arange(5.0), np.zeros(5)))
        coeffs_x, coeffs_y = solve_coefficients(points)

        assert coeffs_x.shape == (4, 5)
        np.testing.assert_allclose(coeffs_x[0], np.arange(5.0), atol=1e-12)
        np.testing.assert_allclose(coeffs_x[1], np.ones(5), atol=1e-12)
        np.testing.assert_allclose(coeffs_x[2:], 0.0, atol=1e-12)
        np.testing.assert_allclose(coeffs_y, 0.0, atol=1e-12)

    def test_continuity(self):
        """Heading and curvature are continuous between pieces."""
        points = np.array([[0.0, 0.0], [1.0, 0.5], [2.5, 0.3], [3.0, 2.0], [4.5, 2.2]])
        coeffs_x, _ = solve_coefficients(points)
        a, b, c, d = coeffs_x

        for i in range(points.shape[0] - 1):
            assert abs(a[i] + b[i] + c[i] + d[i] - points[i + 1, 0]) < 1e-9
            assert abs(b[i] + 2 * c[i] + 3 * d[i] - b[i + 1]) < 1e-9
            assert abs(c[i] + 3 * d[i] - c[i + 1]) < 1e-9

        # natural ends
        assert abs(c[0]) < 1e-9
        assert abs(c[-1]) < 1e-9
