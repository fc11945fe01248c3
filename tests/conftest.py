import numpy as np
import pytest

from convnet.helpers.Backend import backend
from convnet.helpers.timers import timers


@pytest.fixture(autouse=True)
def seeded():
    backend.seed(0)
    timers.reset()
    yield


def to_np(x):
    return np.asarray(backend.to_cpu(x), dtype=np.float64)


def naive_correlate(x, w):
    # x: (C, H, W), w: (K, C, fh, fw) -> (K, H-fh+1, W-fw+1)
    C, H, W = x.shape
    K, _, fh, fw = w.shape
    out = np.zeros((K, H - fh + 1, W - fw + 1))
    for k in range(K):
        for i in range(H - fh + 1):
            for j in range(W - fw + 1):
                out[k, i, j] = np.sum(x[:, i:i + fh, j:j + fw] * w[k])
    return out


def naive_correlate_backward(e, w):
    # e: (K, oh, ow) -> (C, oh+fh-1, ow+fw-1), scatter of each error through its filter
    K, oh, ow = e.shape
    _, C, fh, fw = w.shape
    out = np.zeros((C, oh + fh - 1, ow + fw - 1))
    for k in range(K):
        for i in range(oh):
            for j in range(ow):
                out[:, i:i + fh, j:j + fw] += e[k, i, j] * w[k]
    return out
