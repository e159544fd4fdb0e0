"""
Parameters of the minimum curvature optimizer and their import from an INI file.
"""
import ast
import configparser
import os
from dataclasses import dataclass, fields


@dataclass
class MinCurvatureParams:
    """
    Static settings of the minimum curvature optimizer.

    Attributes:
        num_control_points: Number of control points of the reference (only used if the system matrix is constant)
        constant_system_matrix: Compute the inverse system matrix once instead of every optimization pass
        max_iterations: Iteration limit of the QP solver
        warm_start: Start the QP solver from the previous solution if the problem size did not change
        verbose: Print solver output and runtimes
        num_points_evaluate: Number of samples taken on every boundary spline
        num_nearest: Number of boundary samples checked per control point
        kdtree_leaf_size: Leaf size of the k-d trees built on the boundary samples
        shrink_margin: Safety distance to the track boundaries in m
    """
    num_control_points: int = 20
    constant_system_matrix: bool = False
    max_iterations: int = 4000
    warm_start: bool = True
    verbose: bool = False
    num_points_evaluate: int = 500
    num_nearest: int = 3
    kdtree_leaf_size: int = 10
    shrink_margin: float = 0.2

    def __post_init__(self):
        if self.num_control_points < 2:
            raise ValueError("num_control_points must be at least 2, got %i!" % self.num_control_points)
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be positive, got %i!" % self.max_iterations)
        if self.num_points_evaluate < 2:
            raise ValueError("num_points_evaluate must be at least 2, got %i!" % self.num_points_evaluate)
        if not 1 <= self.num_nearest <= self.num_points_evaluate:
            raise ValueError("num_nearest must lie within [1, num_points_evaluate], got %i!" % self.num_nearest)
        if self.kdtree_leaf_size < 1:
            raise ValueError("kdtree_leaf_size must be positive, got %i!" % self.kdtree_leaf_size)
        if self.shrink_margin < 0.0:
            raise ValueError("shrink_margin must not be negative, got %.3f!" % self.shrink_margin)


def load_params(file_path: str,
                section: str = "OPTIMIZATION_OPTIONS",
                option: str = "optim_opts_mincurv") -> MinCurvatureParams:
    """
    Read optimizer parameters from an INI file. The option has to hold a python dict, e.g.

    [OPTIMIZATION_OPTIONS]
    optim_opts_mincurv = {"num_points_evaluate": 300, "shrink_margin": 0.3}

    Keys that are not given keep their default values.
    """

    if not os.path.isfile(file_path):
        raise IOError("Parameter file %s does not exist!" % file_path)

    parser = configparser.ConfigParser()
    parser.read(file_path)

    try:
        opts = ast.literal_eval(parser.get(section, option))
    except (SyntaxError, ValueError) as e:
        raise ValueError("Invalid format in INI file parameters. Ensure Python dictionary syntax is used.") from e

    if not isinstance(opts, dict):
        raise ValueError("Option %s in section %s must be a dictionary!" % (option, section))

    known_keys = {f.name for f in fields(MinCurvatureParams)}
    unknown_keys = sorted(set(opts) - known_keys)

    if unknown_keys:
        raise ValueError("Unknown optimizer parameters: %s" % ", ".join(unknown_keys))

    return MinCurvatureParams(**opts)
