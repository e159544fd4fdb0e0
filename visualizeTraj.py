import numpy as np
import matplotlib.pyplot as plt


def plot_trajectory(ref_spline,
                    left_spline,
                    right_spline,
                    opt_spline=None,
                    normvectors: np.ndarray = None,
                    num_points: int = 300,
                    save_path: str = None,
                    show: bool = True):
    """
    Plot the track boundaries, the reference line and (if given) the optimized trajectory. Normal vectors are drawn
    at the reference control points if provided. Returns the figure.
    """
    u_eval = np.linspace(0.0, 1.0, num_points)

    fig = plt.figure(figsize=(10, 10))

    # Plot boundaries
    for spline in (left_spline, right_spline):
        bound = spline.evaluate(u_eval)
        plt.plot(bound[:, 0], bound[:, 1], color="green", linewidth=1.0)

    # Plot reference line and its control points
    ref = ref_spline.evaluate(u_eval)
    ref_cp = ref_spline.control_points
    plt.plot(ref[:, 0], ref[:, 1], color="blue", linewidth=1.0, label="Reference line")
    plt.scatter(ref_cp[:, 0], ref_cp[:, 1], s=8, color="blue")

    # Plot normal vectors
    if normvectors is not None:
        plt.quiver(ref_cp[:, 0], ref_cp[:, 1], normvectors[:, 0], normvectors[:, 1],
                   color="gray", width=0.002, label="Normal vectors")

    if opt_spline is not None:
        opt = opt_spline.evaluate(u_eval)
        plt.plot(opt[:, 0], opt[:, 1], color="red", linewidth=1.5, label="Optimized trajectory")

    # Add legend and labels
    plt.legend()
    plt.xlabel("X (meters)")
    plt.ylabel("Y (meters)")
    plt.title("Track Visualization: Reference Line, Boundaries and Optimized Trajectory")
    plt.axis("equal")  # Maintain aspect ratio
    plt.grid(True)

    # Save or display the plot
    if save_path is not None:
        plt.savefig(save_path)
    if show:
        plt.show()

    return fig
