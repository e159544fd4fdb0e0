import numpy as np
import pandas as pd


def compare_curvature(file1_path: str, file2_path: str, label1: str = "Reference", label2: str = "Optimized") -> dict:
    """
    Compare curvature between two exported trajectory CSV files using the kappa_radpm column.
    """
    # Load data
    df1 = pd.read_csv(file1_path)
    df2 = pd.read_csv(file2_path)

    for df, file_path in ((df1, file1_path), (df2, file2_path)):
        if "kappa_radpm" not in df.columns:
            raise IOError("File %s holds no kappa_radpm column!" % file_path)

    kappa1 = df1["kappa_radpm"].values
    kappa2 = df2["kappa_radpm"].values

    # Calculate total and average absolute curvature
    results = {
        label1: {"total": float(np.sum(np.abs(kappa1))), "average": float(np.mean(np.abs(kappa1)))},
        label2: {"total": float(np.sum(np.abs(kappa2))), "average": float(np.mean(np.abs(kappa2)))},
    }

    # Print results
    print("Total absolute curvature comparison:")
    print(f"{label1}: {results[label1]['total']:.4f} rad/m")
    print(f"{label2}: {results[label2]['total']:.4f} rad/m")
    print("\nAverage absolute curvature:")
    print(f"{label1}: {results[label1]['average']:.4f} rad/m")
    print(f"{label2}: {results[label2]['average']:.4f} rad/m")

    # Determine smoother trajectory
    if results[label1]["total"] < results[label2]["total"]:
        print(f"\n{label1} has lower total curvature")
    elif results[label2]["total"] < results[label1]["total"]:
        print(f"\n{label2} has lower total curvature")
    else:
        print("\nBoth trajectories have identical total curvature")

    return results
