import math
from typing import Union

import numpy as np

import spline_system


def normalize_psi(psi: Union[np.ndarray, float]) -> Union[np.ndarray, float]:
    """
    .. description::
    Normalize heading psi such that [-pi,pi[ holds as interval boundaries.

    .. inputs::
    :param psi:         array containing headings psi to be normalized.
    :type psi:          Union[np.ndarray, float]

    .. outputs::
    :return psi_out:    array with normalized headings psi.
    :rtype psi_out:     Union[np.ndarray, float]
    """

    # use modulo operator to remove multiples of 2*pi
    psi_out = np.sign(psi) * np.mod(np.abs(psi), 2 * math.pi)

    # restrict psi to [-pi,pi[
    if type(psi_out) is np.ndarray:
        psi_out[psi_out >= math.pi] -= 2 * math.pi
        psi_out[psi_out < -math.pi] += 2 * math.pi

    else:
        if psi_out >= math.pi:
            psi_out -= 2 * math.pi
        elif psi_out < -math.pi:
            psi_out += 2 * math.pi

    return psi_out


class CubicSpline:
    """
    Unclosed natural cubic spline through a set of 2D control points.

    Every pair of consecutive control points is connected by a cubic piece with the local parameter t in [0, 1]. The
    coefficients are the solution of the spline system in spline_system, so the optimizer works on exactly the same
    linear relation between control points and coefficients. Coefficient matrices have the shape (4 x no_points),
    rows holding the polynomial orders 0..3; column i belongs to control point i.
    """

    def __init__(self, control_points: np.ndarray):
        self._control_points = None
        self._coeffs_x = None
        self._coeffs_y = None
        self.set_control_points(control_points)

    def __len__(self) -> int:
        return self.size()

    def size(self) -> int:
        return self._control_points.shape[0]

    @property
    def control_points(self) -> np.ndarray:
        return self._control_points.copy()

    @property
    def coefficients(self) -> tuple:
        return self._coeffs_x.copy(), self._coeffs_y.copy()

    def set_control_points(self, control_points: np.ndarray) -> None:
        control_points = np.array(control_points, dtype=float)

        # check inputs
        if control_points.ndim != 2 or control_points.shape[1] != 2:
            raise ValueError("Control points must be provided as an array of size (no_points x 2)!")

        if control_points.shape[0] < 2:
            raise ValueError("A cubic spline requires at least 2 control points, got %i!" % control_points.shape[0])

        if not np.all(np.isfinite(control_points)):
            raise ValueError("Control points must be finite!")

        self._control_points = control_points
        self._coeffs_x, self._coeffs_y = spline_system.solve_coefficients(control_points)

    def _locate(self, u: np.ndarray) -> tuple:
        # map the normalized parameter onto piece index and local parameter t
        no_pieces = self.size() - 1
        t_glob = np.clip(u, 0.0, 1.0) * no_pieces
        ind_spls = np.minimum(np.floor(t_glob).astype(int), no_pieces - 1)

        return ind_spls, t_glob - ind_spls

    def evaluate(self, u: Union[float, np.ndarray], derivative: int = 0) -> np.ndarray:
        """
        Evaluate the spline (or one of its first two derivatives with respect to the local parameter) at the normalized
        parameter u in [0, 1]. Returns [x, y] for a scalar u and an array of size (len(u) x 2) otherwise.
        """

        if derivative not in (0, 1, 2):
            raise ValueError("Derivative order must be 0, 1 or 2, got %s!" % str(derivative))

        u_arr = np.atleast_1d(np.asarray(u, dtype=float))
        ind_spls, t = self._locate(u_arr)

        if derivative == 0:
            t_set = np.stack((np.ones_like(t), t, np.power(t, 2), np.power(t, 3)))
        elif derivative == 1:
            t_set = np.stack((np.zeros_like(t), np.ones_like(t), 2 * t, 3 * np.power(t, 2)))
        else:
            t_set = np.stack((np.zeros_like(t), np.zeros_like(t), 2 * np.ones_like(t), 6 * t))

        points = np.column_stack((np.sum(self._coeffs_x[:, ind_spls] * t_set, axis=0),
                                  np.sum(self._coeffs_y[:, ind_spls] * t_set, axis=0)))

        if np.ndim(u) == 0:
            return points[0]

        return points

    def calc_head_curv(self, u: Union[float, np.ndarray]) -> tuple:
        """
        .. description::
        Analytical calculation of heading psi and curvature kappa at the normalized parameter values u.

        .. inputs::
        :param u:       normalized spline parameter(s) in [0, 1].
        :type u:        Union[float, np.ndarray]

        .. outputs::
        :return psi:    heading at every point (psi = 0 is north).
        :rtype psi:     np.ndarray
        :return kappa:  curvature at every point.
        :rtype kappa:   np.ndarray

        .. notes::
        Curvature is scaled to the local spline parameter, i.e. it is exact in m^-1 only for unit spaced control
        points.
        """

        first = np.atleast_2d(self.evaluate(np.atleast_1d(u), derivative=1))
        second = np.atleast_2d(self.evaluate(np.atleast_1d(u), derivative=2))

        x_d, y_d = first[:, 0], first[:, 1]
        x_dd, y_dd = second[:, 0], second[:, 1]

        # calculate heading psi (pi/2 must be substracted due to our convention that psi = 0 is north)
        psi = normalize_psi(np.arctan2(y_d, x_d) - math.pi / 2)

        # calculate curvature kappa
        kappa = (x_d * y_dd - y_d * x_dd) / np.power(np.power(x_d, 2) + np.power(y_d, 2), 1.5)

        return psi, kappa

    def calc_spline_lengths(self, no_interp_points: int = 15) -> np.ndarray:
        """Length of every spline piece based on no_interp_points intermediate coordinates."""

        no_pieces = self.size() - 1
        t_steps = np.linspace(0.0, 1.0, no_interp_points)
        t_set = np.stack((np.ones_like(t_steps), t_steps, np.power(t_steps, 2), np.power(t_steps, 3)))
        spline_lengths = np.zeros(no_pieces)

        for i in range(no_pieces):
            spl_coords = np.column_stack((self._coeffs_x[:, i] @ t_set, self._coeffs_y[:, i] @ t_set))
            spline_lengths[i] = np.sum(np.sqrt(np.sum(np.power(np.diff(spl_coords, axis=0), 2), axis=1)))

        return spline_lengths
