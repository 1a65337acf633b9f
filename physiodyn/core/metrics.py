
import numpy as np
from scipy.integrate import trapezoid


def compute_peak(times: np.ndarray, values: np.ndarray, baseline: np.ndarray) -> tuple:
    """
    Largest absolute excursion from baseline.

    Returns (peak value, time of peak).
    """
    excursion = np.abs(values - baseline)
    idx = int(np.argmax(excursion))
    return float(values[idx]), float(times[idx])


def compute_auc_above_baseline(times: np.ndarray, values: np.ndarray, baseline: np.ndarray) -> float:
    return float(trapezoid(np.clip(values - baseline, 0.0, None), times))


def compute_return_to_baseline(times: np.ndarray, values: np.ndarray, baseline: np.ndarray,
                               peak_time: float, tolerance: float = 0.1) -> float:
    """
    First time after the peak when the value is back within `tolerance`
    (fraction of the baseline) of baseline. NaN if it never returns.
    """
    band = tolerance * np.maximum(np.abs(baseline), 1e-9)
    within = np.abs(values - baseline) <= band
    after = times >= peak_time
    hits = np.nonzero(within & after)[0]
    if hits.size == 0:
        return float("nan")
    return float(times[hits[0]])


def compute_signal_metrics(times, values, baseline, start_time: float = 0.0,
                           end_time: float = None, tolerance: float = 0.1) -> dict:
    """
    Summary metrics for one signal series against its baseline series.

    Args:
        times: Timestamps (min)
        values: Simulated values
        baseline: Baseline values (scalar or aligned series)
        start_time: Start of evaluation window (min)
        end_time: End of evaluation window (min)
        tolerance: Return-to-baseline band as a fraction of baseline

    Returns:
        dict: {peak, time_to_peak, auc_above_baseline, return_to_baseline}
    """
    t_arr = np.asarray(times, dtype=float)
    v_arr = np.asarray(values, dtype=float)
    b_arr = np.broadcast_to(np.asarray(baseline, dtype=float), t_arr.shape)

    if end_time is None:
        end_time = t_arr[-1]

    mask = (t_arr >= start_time) & (t_arr <= end_time)

    if not np.any(mask):
        return {"peak": float("nan"), "time_to_peak": float("nan"),
                "auc_above_baseline": 0.0, "return_to_baseline": float("nan")}

    t_win, v_win, b_win = t_arr[mask], v_arr[mask], b_arr[mask]
    peak, peak_time = compute_peak(t_win, v_win, b_win)
    return {
        "peak": peak,
        "time_to_peak": peak_time - start_time,
        "auc_above_baseline": compute_auc_above_baseline(t_win, v_win, b_win),
        "return_to_baseline": compute_return_to_baseline(t_win, v_win, b_win, peak_time, tolerance),
    }


def summarize_response(response, baseline_response=None, signals=None, **kwargs) -> dict:
    """
    Metrics per signal. Without a baseline response, each series is
    compared with its own first value.
    """
    keys = signals or list(response.series)
    summary = {}
    for key in keys:
        key = getattr(key, "value", key)
        values = response.series[key]
        if baseline_response is not None:
            baseline = baseline_response.series[key]
        else:
            baseline = values[0]
        summary[key] = compute_signal_metrics(response.times, values, baseline, **kwargs)
    return summary
