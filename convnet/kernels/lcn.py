import numpy as np
from ..helpers.Backend import backend

EPS = 1e-8


def lcn_filter(K, mid, sigma):
    """
    K x K Gaussian window centred on (mid, mid), normalized to sum to 1.
    """
    idx = np.arange(K) - mid
    d2 = idx[:, None] ** 2 + idx[None, :] ** 2
    w = np.exp(-d2 / (2.0 * sigma * sigma)) / (2.0 * np.pi * sigma * sigma)
    w /= w.sum()
    return backend.ensure_array(w, dtype=backend.default_float)


def _local_sum(x, w, mid):
    # zero-padded "same" weighted sum over the last two axes
    pad = [(0, 0)] * (x.ndim - 2) + [(mid, mid), (mid, mid)]
    xp = backend.pad(x, pad, mode="constant")
    windows = backend.sliding_window_view(xp, w.shape, axis=(-2, -1))  # (..., H, W, K, K)
    nd = windows.ndim
    return backend.tensordot(windows, w, axes=([nd - 2, nd - 1], [0, 1]))


def lcn_compute(y, x, w, mid):
    """
    Local contrast normalization of one sample, written into ``y``.

    x: (C, H, W) or (H, W); every channel is normalized on its own.
    1. subtract the Gaussian-weighted mean of the K x K neighbourhood
    2. divide by the weighted neighbourhood standard deviation, floored
       by its mean over the channel plane
    """
    centered = x - _local_sum(x, w, mid)
    local_std = backend.sqrt(_local_sum(centered * centered, w, mid))

    plane_mean = backend.mean(local_std, axis=(-2, -1), keepdims=True)
    divisor = backend.maximum(local_std, plane_mean)
    divisor = backend.xp.where(divisor < EPS, 1.0, divisor)

    y[...] = centered / divisor
    return y
