import sys
import time

import numpy as np
import osqp
from scipy import sparse
from scipy import spatial

import spline_system
from min_curv_params import MinCurvatureParams


class QPSolveError(RuntimeError):
    """Raised if the QP solver does not return a usable solution."""


def calc_normal_vectors(coeffs_x: np.ndarray,
                        coeffs_y: np.ndarray) -> np.ndarray:
    """
    .. description::
    Calculate the normalized normal vectors of a spline at its control points. The first order coefficients b_i of the
    spline pieces are the derivatives at the control points, the normal vectors are the derivatives rotated by 90deg to
    the left.

    .. inputs::
    :param coeffs_x:            coefficient matrix of the x-component (4 x no_points).
    :type coeffs_x:             np.ndarray
    :param coeffs_y:            coefficient matrix of the y-component (4 x no_points).
    :type coeffs_y:             np.ndarray

    .. outputs::
    :return normvec_normalized: normalized normal vectors [x, y] (no_points x 2).
    :rtype normvec_normalized:  np.ndarray
    """

    if coeffs_x.shape != coeffs_y.shape:
        raise ValueError("Coefficient matrices must have the same shape!")

    normvec = np.stack((-coeffs_y[1], coeffs_x[1]), axis=1)
    norms = np.sqrt(np.sum(np.power(normvec, 2), axis=1))

    # duplicate control points lead to vanishing derivatives
    if np.any(norms < 1e-9):
        raise ValueError("Normal vectors are undefined at control points %s, check for duplicate control points!"
                         % str(np.nonzero(norms < 1e-9)[0].tolist()))

    return normvec / np.expand_dims(norms, axis=1)


def calc_hessian_and_linear(control_points: np.ndarray,
                            normvectors: np.ndarray,
                            M_inv: np.ndarray) -> tuple:
    """
    .. description::
    Set up the quadratic (H) and linear (c) terms of the curvature cost, such that the QP solver minimizes
    (1/2) * alpha.T * H * alpha + c.T * alpha with alpha being the shift of every control point along its normal vector.

    .. inputs::
    :param control_points:  control points [x, y] of the reference spline (no_points x 2).
    :type control_points:   np.ndarray
    :param normvectors:     normalized normal vectors at the control points (no_points x 2).
    :type normvectors:      np.ndarray
    :param M_inv:           inverse of the spline system matrix (4 * no_points x 4 * no_points).
    :type M_inv:            np.ndarray

    .. outputs::
    :return H:              symmetric hessian (no_points x no_points).
    :rtype H:               np.ndarray
    :return c:              linear term (no_points).
    :rtype c:               np.ndarray
    """

    no_points = control_points.shape[0]
    size_system = 4 * no_points

    # check inputs
    if normvectors.shape != (no_points, 2):
        raise ValueError("Array size of control_points should be the same as normvectors!")

    if M_inv.shape != (size_system, size_system):
        raise ValueError("Inverse system matrix has wrong dimensions for %i control points!" % no_points)

    # ------------------------------------------------------------------------------------------------------------------
    # CURVATURE WEIGHTS ------------------------------------------------------------------------------------------------
    # ------------------------------------------------------------------------------------------------------------------

    square_normals = np.power(normvectors[:, 0], 2) + np.power(normvectors[:, 1], 2)

    P_xx = np.diag(np.power(normvectors[:, 0], 2) / square_normals)
    P_yy = np.diag(np.power(normvectors[:, 1], 2) / square_normals)
    P_xy = np.diag(2 * normvectors[:, 0] * normvectors[:, 1] / square_normals)

    # ------------------------------------------------------------------------------------------------------------------
    # EXTRACTION AND INJECTION MATRICES --------------------------------------------------------------------------------
    # ------------------------------------------------------------------------------------------------------------------

    # extraction matrix -> only c_i coefficients of the solved linear equation system are needed for curvature
    # information
    A_ex = np.zeros((no_points, size_system))
    A_ex[np.arange(no_points), 4 * np.arange(no_points) + 2] = 1

    # M_x and M_y bring the normal vectors into the right hand side of the spline system, q_x and q_y hold the point
    # coordinates
    rows, cols = spline_system.calc_rhs_layout(no_points)

    M_x = np.zeros((size_system, no_points))
    M_y = np.zeros((size_system, no_points))
    M_x[rows, cols] = normvectors[cols, 0]
    M_y[rows, cols] = normvectors[cols, 1]

    q_x, q_y = spline_system.calc_rhs_vectors(control_points)

    # ------------------------------------------------------------------------------------------------------------------
    # SET UP FINAL MATRICES FOR SOLVER ---------------------------------------------------------------------------------
    # ------------------------------------------------------------------------------------------------------------------

    T_c = 2 * np.matmul(A_ex, M_inv)
    T_nx = np.matmul(T_c, M_x)
    T_ny = np.matmul(T_c, M_y)

    H_x = np.matmul(T_nx.T, np.matmul(P_xx, T_nx))
    H_xy = np.matmul(T_ny.T, np.matmul(P_xy, T_nx))
    H_y = np.matmul(T_ny.T, np.matmul(P_yy, T_ny))
    H = H_x + H_xy + H_y
    H = (H + H.T) / 2   # make H symmetric

    c_x = 2 * np.matmul(T_nx.T, np.matmul(P_xx, np.matmul(T_c, q_x)))
    c_xy = np.matmul(T_ny.T, np.matmul(P_xy, np.matmul(T_c, q_x))) \
        + np.matmul(T_nx.T, np.matmul(P_xy, np.matmul(T_c, q_y)))
    c_y = 2 * np.matmul(T_ny.T, np.matmul(P_yy, np.matmul(T_c, q_y)))
    c = c_x + c_xy + c_y

    return H, c


def calc_distance_across(tree: spatial.cKDTree,
                         bound_points: np.ndarray,
                         control_point: np.ndarray,
                         normvector: np.ndarray,
                         num_nearest: int) -> float:
    """
    .. description::
    Distance from a control point to the boundary sample lying across the track, i.e. among the num_nearest
    (euclidean) neighbours the sample closest to the line through the control point along its normal vector.

    .. inputs::
    :param tree:            k-d tree built on bound_points.
    :type tree:             spatial.cKDTree
    :param bound_points:    boundary samples [x, y].
    :type bound_points:     np.ndarray
    :param control_point:   control point [x, y].
    :type control_point:    np.ndarray
    :param normvector:      normalized normal vector at the control point [x, y].
    :type normvector:       np.ndarray
    :param num_nearest:     number of neighbours to check.
    :type num_nearest:      int

    .. outputs::
    :return distance:       euclidean distance between control point and the selected sample.
    :rtype distance:        float
    """

    # line along the normal vector: a * x + b * y + c_line = 0
    a_line = -normvector[1]
    b_line = normvector[0]
    c_line = -a_line * control_point[0] - b_line * control_point[1]
    norm_factor = np.sqrt(a_line * a_line + b_line * b_line)

    inds_nearest = np.atleast_1d(tree.query(control_point, k=num_nearest)[1])
    nearest_points = bound_points[inds_nearest]

    line2point_dists = np.abs(a_line * nearest_points[:, 0] + b_line * nearest_points[:, 1] + c_line) / norm_factor

    # argmin keeps the first candidate on ties
    across_point = nearest_points[np.argmin(line2point_dists)]

    return float(np.sqrt(np.sum(np.power(across_point - control_point, 2))))


def calc_boundary_distance(control_points: np.ndarray,
                           normvectors: np.ndarray,
                           left_spline,
                           right_spline,
                           num_points_evaluate: int,
                           num_nearest: int,
                           kdtree_leaf_size: int = 10,
                           shrink_margin: float = 0.0) -> np.ndarray:
    """
    .. description::
    Calculate the free space to the left and to the right boundary for every control point. The boundary splines are
    sampled equidistantly in their parameter and searched with one k-d tree per side.

    .. inputs::
    :param control_points:      control points [x, y] of the reference spline (no_points x 2).
    :type control_points:       np.ndarray
    :param normvectors:         normalized normal vectors at the control points (no_points x 2).
    :type normvectors:          np.ndarray
    :param left_spline:         left boundary spline.
    :type left_spline:          CubicSpline
    :param right_spline:        right boundary spline.
    :type right_spline:         CubicSpline
    :param num_points_evaluate: number of samples on every boundary spline.
    :type num_points_evaluate:  int
    :param num_nearest:         number of boundary samples checked per control point.
    :type num_nearest:          int
    :param kdtree_leaf_size:    leaf size of the k-d trees.
    :type kdtree_leaf_size:     int
    :param shrink_margin:       safety distance subtracted from the boundary distances in m.
    :type shrink_margin:        float

    .. outputs::
    :return distance:           free space [left, right] for every control point (no_points x 2), always >= 0.
    :rtype distance:            np.ndarray
    """

    # check inputs
    if num_points_evaluate < 2:
        raise ValueError("At least 2 points must be evaluated on every boundary, got %i!" % num_points_evaluate)

    if not 1 <= num_nearest <= num_points_evaluate:
        raise ValueError("Number of nearest neighbours (%i) must lie within [1, %i]!"
                         % (num_nearest, num_points_evaluate))

    # sample boundaries and build k-d trees
    u_eval = np.linspace(0.0, 1.0, num_points_evaluate)
    left_points = left_spline.evaluate(u_eval)
    right_points = right_spline.evaluate(u_eval)

    left_tree = spatial.cKDTree(left_points, leafsize=kdtree_leaf_size)
    right_tree = spatial.cKDTree(right_points, leafsize=kdtree_leaf_size)

    no_points = control_points.shape[0]
    distance = np.zeros((no_points, 2))

    for i in range(no_points):
        distance[i, 0] = calc_distance_across(tree=left_tree,
                                              bound_points=left_points,
                                              control_point=control_points[i],
                                              normvector=normvectors[i],
                                              num_nearest=num_nearest)
        distance[i, 1] = calc_distance_across(tree=right_tree,
                                              bound_points=right_points,
                                              control_point=control_points[i],
                                              normvector=normvectors[i],
                                              num_nearest=num_nearest)

    return np.maximum(0.0, distance - shrink_margin)


def calc_constraints(distance: np.ndarray,
                     last_point_shrink: float) -> tuple:
    """
    .. description::
    Box constraints lower <= A * alpha <= upper for the normal shifts alpha. The first control point is fixed, the
    allowed range of the last control point is scaled by last_point_shrink.

    .. inputs::
    :param distance:            free space [left, right] for every control point (no_points x 2).
    :type distance:             np.ndarray
    :param last_point_shrink:   scaling of the last point's range, within [0, 1].
    :type last_point_shrink:    float

    .. outputs::
    :return A:                  constraint matrix (identity).
    :rtype A:                   np.ndarray
    :return lower_bound:        lower bounds.
    :rtype lower_bound:         np.ndarray
    :return upper_bound:        upper bounds.
    :rtype upper_bound:         np.ndarray
    """

    if not 0.0 <= last_point_shrink <= 1.0:
        raise ValueError("last_point_shrink must lie within [0, 1], got %s!" % str(last_point_shrink))

    no_points = distance.shape[0]

    # shifts along the normal vector are positive to the left
    lower_bound = -distance[:, 1].copy()
    upper_bound = distance[:, 0].copy()
    A = np.eye(no_points)

    # first control point is fixed (i.e. no moving along the normal vector)
    lower_bound[0] = 0.0
    upper_bound[0] = 0.0

    # last control point gets a smaller range
    lower_bound[-1] *= last_point_shrink
    upper_bound[-1] *= last_point_shrink

    return A, lower_bound, upper_bound


class QPSession:
    """
    Holds one QP of the form

        minimize    (1/2) * x.T * H * x + c.T * x
        subject to  lower <= A * x <= upper

    and solves it with OSQP.
    """

    def __init__(self, max_iterations: int = 4000, warm_start: bool = True, verbose: bool = False):
        self.max_iterations = max_iterations
        self.warm_start = warm_start
        self.verbose = verbose
        self._last_solution = None
        self.clear()

    def clear(self) -> None:
        """Remove the loaded problem. The last solution is kept for warm starting."""
        self.H = None
        self.c = None
        self.A = None
        self.lower_bound = None
        self.upper_bound = None
        self.solution = None

    @property
    def is_loaded(self) -> bool:
        return self.H is not None

    @property
    def num_variables(self) -> int:
        return 0 if self.H is None else self.H.shape[0]

    @property
    def num_constraints(self) -> int:
        return 0 if self.A is None else self.A.shape[0]

    def load(self,
             H: np.ndarray,
             c: np.ndarray,
             A: np.ndarray,
             lower_bound: np.ndarray,
             upper_bound: np.ndarray) -> None:
        no_vars = H.shape[0]

        if H.shape != (no_vars, no_vars) or c.shape != (no_vars,):
            raise ValueError("Hessian and linear term do not match in size!")

        if A.shape[1] != no_vars or lower_bound.shape != (A.shape[0],) or upper_bound.shape != (A.shape[0],):
            raise ValueError("Constraint matrix and bounds do not match the problem size!")

        self.clear()
        self.H = H
        self.c = c
        self.A = A
        self.lower_bound = lower_bound
        self.upper_bound = upper_bound

    def solve(self) -> np.ndarray:
        """Solve the loaded problem and return the solution clipped to the variable bounds."""

        if not self.is_loaded:
            raise RuntimeError("No problem loaded, call load() before solve()!")

        infeasible = np.nonzero(self.lower_bound > self.upper_bound)[0]

        if infeasible.size:
            raise QPSolveError("Problem is primal infeasible, lower bound exceeds upper bound for constraints %s!"
                               % str(infeasible.tolist()))

        prob = osqp.OSQP()

        try:
            prob.setup(P=sparse.triu(sparse.csc_matrix(self.H), format="csc"),
                       q=self.c,
                       A=sparse.csc_matrix(self.A),
                       l=self.lower_bound,
                       u=self.upper_bound,
                       verbose=self.verbose,
                       max_iter=self.max_iterations)
        except ValueError as e:
            raise QPSolveError("OSQP setup failed: %s" % str(e)) from e

        if self.warm_start and self._last_solution is not None and self._last_solution.size == self.num_variables:
            prob.warm_start(x=self._last_solution)

        res = prob.solve()

        if res.info.status not in ("solved", "solved inaccurate"):
            raise QPSolveError("OSQP failed: %s (val=%i)" % (res.info.status, res.info.status_val))

        if res.info.status == "solved inaccurate":
            print("WARNING: QP solution is inaccurate, consider increasing the iteration limit!", file=sys.stderr)

        # the iterates fulfill the constraints only within the solver tolerance
        self.solution = np.clip(np.asarray(res.x, dtype=float), self.lower_bound, self.upper_bound)
        self._last_solution = self.solution.copy()

        return self.solution.copy()


class MinCurvatureOptimizer:
    """
    Minimum curvature optimization of a reference spline within the track given by a left and a right boundary spline.
    The control points of the reference are shifted along their normal vectors.

    Usage: set_splines() -> set_up() -> solve(). set_up() has to be called again whenever the splines changed.
    """

    UNINITIALIZED = "uninitialized"
    READY = "ready"
    SOLVED = "solved"

    def __init__(self, params: MinCurvatureParams = None):
        self.params = params if params is not None else MinCurvatureParams()
        self.qp = QPSession(max_iterations=self.params.max_iterations,
                            warm_start=self.params.warm_start,
                            verbose=self.params.verbose)

        self.ref_spline = None
        self.left_spline = None
        self.right_spline = None

        self.system_inverse = None
        self._system_inverse_size = None

        self._reset_problem()

        # set up the system matrix inverse if it is constant
        if self.params.constant_system_matrix:
            self._update_system_inverse(self.params.num_control_points)

    def _reset_problem(self) -> None:
        self.control_points = None
        self.normvectors = None
        self.distance = None
        self.H = None
        self.c = None
        self.A = None
        self.lower_bound = None
        self.upper_bound = None
        self.qp.clear()
        self.state = self.UNINITIALIZED

    def _update_system_inverse(self, no_points: int) -> None:
        if self.params.constant_system_matrix and self._system_inverse_size == no_points:
            return

        if self.params.constant_system_matrix and self._system_inverse_size is not None:
            print("WARNING: Reference has %i control points, the constant system matrix was set up for %i. The system "
                  "matrix is recomputed!" % (no_points, self._system_inverse_size), file=sys.stderr)

        self.system_inverse = spline_system.calc_system_inverse(no_points)
        self._system_inverse_size = no_points

    def set_splines(self, ref_spline, left_spline, right_spline) -> None:
        self.ref_spline = ref_spline
        self.left_spline = left_spline
        self.right_spline = right_spline
        self._reset_problem()

    def set_up(self, last_point_shrink: float) -> None:
        """
        Assemble the QP for the current splines. The first control point stays fixed, the range of the last control
        point is scaled by last_point_shrink within [0, 1].
        """

        t_start = time.perf_counter()

        if self.ref_spline is None:
            raise RuntimeError("Splines are not set, call set_splines() before set_up()!")

        if not 0.0 <= last_point_shrink <= 1.0:
            raise ValueError("last_point_shrink must lie within [0, 1], got %s!" % str(last_point_shrink))

        no_points = self.ref_spline.size()

        if self.left_spline.size() != no_points or self.right_spline.size() != no_points:
            raise ValueError("Reference (%i), left (%i) and right (%i) spline must have the same number of control "
                             "points!" % (no_points, self.left_spline.size(), self.right_spline.size()))

        self._reset_problem()

        # objective
        self.control_points = self.ref_spline.control_points
        self.normvectors = calc_normal_vectors(*self.ref_spline.coefficients)
        self._update_system_inverse(no_points)
        self.H, self.c = calc_hessian_and_linear(control_points=self.control_points,
                                                 normvectors=self.normvectors,
                                                 M_inv=self.system_inverse)

        # constraints
        self.distance = calc_boundary_distance(control_points=self.control_points,
                                               normvectors=self.normvectors,
                                               left_spline=self.left_spline,
                                               right_spline=self.right_spline,
                                               num_points_evaluate=self.params.num_points_evaluate,
                                               num_nearest=self.params.num_nearest,
                                               kdtree_leaf_size=self.params.kdtree_leaf_size,
                                               shrink_margin=self.params.shrink_margin)
        self.A, self.lower_bound, self.upper_bound = calc_constraints(distance=self.distance,
                                                                      last_point_shrink=last_point_shrink)

        no_blocked = int(np.count_nonzero(np.sum(self.distance[1:], axis=1) == 0.0))

        if no_blocked:
            print("WARNING: No free space left at %i control points, shrink margin might be too large!" % no_blocked,
                  file=sys.stderr)

        self.qp.load(H=self.H, c=self.c, A=self.A, lower_bound=self.lower_bound, upper_bound=self.upper_bound)
        self.state = self.READY

        if self.params.verbose:
            print("Setup time: " + "{:.3f}".format((time.perf_counter() - t_start) * 1e3) + "ms")

    def solve(self, opt_traj, normal_weight: float = 1.0) -> np.ndarray:
        """
        Solve the QP and write the shifted control points into opt_traj. The shifts are scaled by normal_weight. On
        failure a QPSolveError is raised and opt_traj is left unchanged. Returns the applied (scaled) shifts.
        """

        if self.state == self.UNINITIALIZED:
            raise RuntimeError("Optimizer is not set up, call set_up() before solve()!")

        if opt_traj.size() != self.control_points.shape[0]:
            raise ValueError("Output spline has %i control points, reference has %i!"
                             % (opt_traj.size(), self.control_points.shape[0]))

        t_start = time.perf_counter()
        alpha = self.qp.solve()

        if self.params.verbose:
            print("Solving time: " + "{:.0f}".format((time.perf_counter() - t_start) * 1e6) + "us")

        alpha = normal_weight * alpha

        opt_traj.set_control_points(self.control_points + np.expand_dims(alpha, axis=1) * self.normvectors)
        self.state = self.SOLVED

        return alpha
