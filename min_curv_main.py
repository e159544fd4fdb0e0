import ast
import configparser
import os
import compareCurvature
import cubic_spline
import min_curv_params
import racelineOptimization
import track
import visualizeTraj

# USER INPUT
file_paths = {
    "module": os.path.dirname(os.path.abspath(__file__)),
    "params_file": "min_curv.ini",
}

plot_opts = {
    "trajectory": True,
    "spline_normals": False
}

# PATHS
inputs_dir = os.path.join(file_paths["module"], "inputs")
outputs_dir = os.path.join(file_paths["module"], "outputs")
os.makedirs(outputs_dir, exist_ok=True)

file_paths["params_file"] = os.path.join(inputs_dir, file_paths["params_file"])

# PARAMETERS
parser = configparser.ConfigParser()
parser.read(file_paths["params_file"])

track_opts = ast.literal_eval(parser.get('GENERAL_OPTIONS', 'track_opts'))
run_opts = ast.literal_eval(parser.get('GENERAL_OPTIONS', 'run_opts'))
optim_opts = min_curv_params.load_params(file_paths["params_file"])

file_paths["track_file"] = os.path.join(inputs_dir, track_opts["track_name"] + ".csv")
file_paths["ref_export"] = os.path.join(outputs_dir, track_opts["track_name"] + "_ref.csv")
file_paths["traj_export"] = os.path.join(outputs_dir, track_opts["track_name"] + "_mincurv.csv")

print("Finish path declaration")

# IMPORT TRACK
reftrack_imp = track.import_track(file_path=file_paths["track_file"], flip=track_opts["flip_track"])
ref_spline, left_spline, right_spline = track.calc_track_splines(reftrack=reftrack_imp)

print("Finish importing track")

# RUN OPTIMIZATION
optimizer = racelineOptimization.MinCurvatureOptimizer(params=optim_opts)
optimizer.set_splines(ref_spline, left_spline, right_spline)
optimizer.set_up(last_point_shrink=run_opts["last_point_shrink"])

opt_spline = cubic_spline.CubicSpline(ref_spline.control_points)
alpha_opt = optimizer.solve(opt_spline, normal_weight=run_opts["normal_weight"])

print("Finish optimizing, maximum normal shift %.2fm" % max(abs(alpha_opt)))

# EXPORT TRAJECTORIES
track.export_trajectory(file_paths["ref_export"], ref_spline, num_points=run_opts["num_points_export"])
track.export_trajectory(file_paths["traj_export"], opt_spline, num_points=run_opts["num_points_export"])

print("Finish export")

# COMPARE CURVATURE
compareCurvature.compare_curvature(file_paths["ref_export"], file_paths["traj_export"])

# PLOT
if plot_opts["trajectory"]:
    visualizeTraj.plot_trajectory(ref_spline=ref_spline,
                                  left_spline=left_spline,
                                  right_spline=right_spline,
                                  opt_spline=opt_spline,
                                  normvectors=optimizer.normvectors if plot_opts["spline_normals"] else None,
                                  save_path=os.path.join(outputs_dir, track_opts["track_name"] + "_mincurv.png"))
