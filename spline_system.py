import numpy as np
from scipy import sparse
from scipy.sparse import linalg as sparse_linalg


def calc_system_matrix(no_points: int) -> sparse.csc_matrix:
    """
    .. description::
    Set up the linear equation system that links the cubic spline coefficients of an unclosed path to its control
    points. Every control point i owns one cubic piece with the coefficients a_i, b_i, c_i, d_i (in this order), the
    last one being a synthetic piece that only carries the heading at the end point.

    Spline equations (t in [0, 1] on every piece):
    P_{x,y}(t)   =  a + b * t +  c * t² +  d * t³
    P_{x,y}'(t)  =      b     + 2c * t  + 3d * t²
    P_{x,y}''(t) =              2c      + 6d * t

    .. inputs::
    :param no_points:   number of control points (at least 2).
    :type no_points:    int

    .. outputs::
    :return M:          sparse system matrix of size (4 * no_points x 4 * no_points).
    :rtype M:           sparse.csc_matrix

    .. notes::
    Both ends are natural (no curvature), the right hand side is set up by calc_rhs_layout().
    """

    if no_points < 2:
        raise ValueError("At least 2 control points are required to set up the spline system, got %i!" % no_points)

    size_system = 4 * no_points
    M = sparse.lil_matrix((size_system, size_system))

    # first piece: point, curvature, next point, heading and curvature continuity
    M[0, 0] = 1.0
    M[1, 2] = 2.0
    M[2, 0:4] = [1.0, 1.0, 1.0, 1.0]
    M[3, 1:4] = [1.0, 2.0, 3.0]
    M[3, 5] = -1.0
    M[4, 2:4] = [1.0, 3.0]
    M[4, 6] = -1.0

    # last (synthetic) piece: point, no curvature, no curvature change
    M[size_system - 3, size_system - 4] = 1.0
    M[size_system - 2, size_system - 2] = 2.0
    M[size_system - 1, size_system - 1] = 1.0

    # create template for the inner pieces
    # row 1: beginning of current spline should be placed on current point (t = 0)
    # row 2: end of current spline should be placed on next point (t = 1)
    # row 3: heading at end of current spline equals heading at beginning of next spline
    # row 4: curvature at end of current spline equals curvature at beginning of next spline (divided by 2)
    template_M = np.array(                  # current piece      | next piece
                [[1,  0,  0,  0,  0,  0,  0],   # a_i                               = {x,y}_i
                 [1,  1,  1,  1,  0,  0,  0],   # a_i + b_i +  c_i +  d_i           = {x,y}_i+1
                 [0,  1,  2,  3,  0, -1,  0],   # _     b_i + 2c_i + 3d_i  - b_i+1  = 0
                 [0,  0,  1,  3,  0,  0, -1]])  # _            c_i + 3d_i  - c_i+1  = 0

    for i in range(1, no_points - 1):
        j = 4 * i
        M[j + 1: j + 5, j: j + 7] = template_M

    return M.tocsc()


def calc_system_inverse(no_points: int) -> np.ndarray:
    """
    .. description::
    Factorize the spline system matrix (sparse LU) and solve it against the identity to obtain the inverse as a dense
    linear operator.

    .. inputs::
    :param no_points:   number of control points (at least 2).
    :type no_points:    int

    .. outputs::
    :return M_inv:      inverse of the system matrix (4 * no_points x 4 * no_points).
    :rtype M_inv:       np.ndarray
    """

    M = calc_system_matrix(no_points)

    # raises a RuntimeError if the matrix is singular
    lu = sparse_linalg.splu(M)

    return lu.solve(np.eye(M.shape[0]))


def calc_rhs_layout(no_points: int) -> tuple:
    """
    Rows of the system right hand side that hold control point coordinates, and the index of the control point each
    of these rows refers to.
    """

    rows = [0, 2]
    cols = [0, 1]

    for i in range(1, no_points - 1):
        rows += [4 * i + 1, 4 * i + 2]
        cols += [i, i + 1]

    rows.append(4 * no_points - 3)
    cols.append(no_points - 1)

    return np.array(rows), np.array(cols)


def calc_rhs_vectors(control_points: np.ndarray) -> tuple:
    """
    .. description::
    Place the control point coordinates into the right hand side vectors q_x and q_y of the spline system.

    .. inputs::
    :param control_points:  control points [x, y] of size (no_points x 2).
    :type control_points:   np.ndarray

    .. outputs::
    :return q_x:            right hand side of the x-component (4 * no_points).
    :rtype q_x:             np.ndarray
    :return q_y:            right hand side of the y-component (4 * no_points).
    :rtype q_y:             np.ndarray
    """

    no_points = control_points.shape[0]
    rows, cols = calc_rhs_layout(no_points)

    q_x = np.zeros(4 * no_points)
    q_y = np.zeros(4 * no_points)
    q_x[rows] = control_points[cols, 0]
    q_y[rows] = control_points[cols, 1]

    return q_x, q_y


def solve_coefficients(control_points: np.ndarray) -> tuple:
    """
    Solve the spline system for both coordinates. Coefficient matrices have the form (4 x no_points) with the rows
    a_i, b_i, c_i, d_i.
    """

    M = calc_system_matrix(control_points.shape[0])
    lu = sparse_linalg.splu(M)

    q_x, q_y = calc_rhs_vectors(control_points)

    coeffs_x = np.reshape(lu.solve(q_x), (-1, 4)).T
    coeffs_y = np.reshape(lu.solve(q_y), (-1, 4)).T

    return coeffs_x, coeffs_y
