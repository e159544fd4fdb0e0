import numpy as np

from cubic_spline import CubicSpline
from racelineOptimization import calc_normal_vectors


def import_track(file_path: str,
                 flip: bool = False) -> np.ndarray:
    """
    Documentation:
    This function imports an unclosed reference track from a csv file.

    Inputs:
    file_path:      file path of track.csv containing [x_m,y_m,w_tr_m] or [x_m,y_m,w_tr_right_m,w_tr_left_m]
    flip:           reverse the driving direction of the imported track

    Outputs:
    reftrack_imp:   imported track [x_m, y_m, w_tr_right_m, w_tr_left_m]
    """

    # load data from csv file
    csv_data_temp = np.loadtxt(file_path, comments='#', delimiter=',', ndmin=2)

    # get coords and track widths out of array
    if np.shape(csv_data_temp)[1] == 3:
        refline_ = csv_data_temp[:, 0:2]
        w_tr_r = csv_data_temp[:, 2] / 2
        w_tr_l = w_tr_r

    elif np.shape(csv_data_temp)[1] == 4:
        refline_ = csv_data_temp[:, 0:2]
        w_tr_r = csv_data_temp[:, 2]
        w_tr_l = csv_data_temp[:, 3]

    else:
        raise IOError("Track file cannot be read!")

    if np.any(w_tr_r < 0.0) or np.any(w_tr_l < 0.0):
        raise IOError("Track widths must not be negative!")

    # assemble to a single array
    reftrack_imp = np.column_stack((refline_, w_tr_r, w_tr_l))

    # check if imported centerline should be flipped, i.e. reverse direction (left and right swap as well)
    if flip:
        reftrack_imp = np.flipud(reftrack_imp)[:, [0, 1, 3, 2]]

    return reftrack_imp


def calc_track_splines(reftrack: np.ndarray) -> tuple:
    """
    Documentation:
    Create the reference spline and both boundary splines of a track. The boundaries are placed along the normal
    vectors of the reference spline at its control points.

    Inputs:
    reftrack:       track [x_m, y_m, w_tr_right_m, w_tr_left_m]

    Outputs:
    ref_spline:     spline through the reference line
    left_spline:    spline on the left track boundary
    right_spline:   spline on the right track boundary
    """

    ref_spline = CubicSpline(reftrack[:, :2])
    normvectors = calc_normal_vectors(*ref_spline.coefficients)

    # normal vectors point to the left
    bound_l = reftrack[:, :2] + normvectors * np.expand_dims(reftrack[:, 3], axis=1)
    bound_r = reftrack[:, :2] - normvectors * np.expand_dims(reftrack[:, 2], axis=1)

    return ref_spline, CubicSpline(bound_l), CubicSpline(bound_r)


def sample_trajectory(spline: CubicSpline,
                      num_points: int) -> np.ndarray:
    """
    Documentation:
    Sample a spline equidistantly in its parameter.

    Outputs:
    trajectory:     [s_m, x_m, y_m, psi_rad, kappa_radpm] for every sample
    """

    if num_points < 2:
        raise ValueError("At least 2 points are required to sample a trajectory!")

    u_eval = np.linspace(0.0, 1.0, num_points)
    points = spline.evaluate(u_eval)
    psi, kappa = spline.calc_head_curv(u_eval)

    el_lengths = np.sqrt(np.sum(np.power(np.diff(points, axis=0), 2), axis=1))
    s_points = np.insert(np.cumsum(el_lengths), 0, 0.0)

    return np.column_stack((s_points, points, psi, kappa))


def export_trajectory(file_path: str,
                      spline: CubicSpline,
                      num_points: int = 200) -> np.ndarray:
    """Sample a spline and save it as csv with the header s_m,x_m,y_m,psi_rad,kappa_radpm."""

    trajectory = sample_trajectory(spline=spline, num_points=num_points)
    np.savetxt(file_path, trajectory, delimiter=',', header='s_m,x_m,y_m,psi_rad,kappa_radpm', comments='')

    return trajectory
