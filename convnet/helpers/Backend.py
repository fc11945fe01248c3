# convnet/helpers/Backend.py
import numpy as np

VERBOSE_STARTUP = False  # set True to print device details on import

try:
    import cupy as cp
    # Quick runtime check, a wheel without a driver imports fine but fails here
    try:
        _ = (cp.array([1, 2, 3]) + 1).sum()
        CUPY_AVAILABLE = True
        if VERBOSE_STARTUP:
            print("CuPy:", cp.__version__)
            print("GPU count:", cp.cuda.runtime.getDeviceCount())
    except Exception as e:
        print(f"CuPy installed but CUDA runtime error: {e}")
        print("Falling back to CPU (NumPy)")
        cp = None
        CUPY_AVAILABLE = False
except ImportError:
    cp = None
    CUPY_AVAILABLE = False


class Backend:
    """Array backend shared by every layer, kernel and context (NumPy or CuPy)."""

    def __init__(self, use_gpu=True, default_float=np.float32):
        self.use_gpu = bool(use_gpu and CUPY_AVAILABLE)
        self.default_float = default_float
        self.xp = cp if self.use_gpu else np
        if VERBOSE_STARTUP:
            print("Using GPU backend (CuPy)" if self.use_gpu else "Using CPU backend (NumPy)")

    # -------- device transfer --------
    def to_cpu(self, x):
        """Move array to CPU (NumPy)."""
        if self.use_gpu and x is not None and not isinstance(x, np.ndarray):
            return cp.asnumpy(x)
        return x

    def ensure_array(self, x, dtype=None):
        """
        Ensure 'x' is an array of the current backend.
        Accepts list/tuple/np/cp arrays; returns xp.ndarray.
        """
        if self.use_gpu and isinstance(x, np.ndarray):
            x = cp.asarray(x)
        elif (not self.use_gpu) and (cp is not None) and isinstance(x, cp.ndarray):
            x = cp.asnumpy(x)
        arr = self.xp.asarray(x)
        if dtype is not None and arr.dtype != dtype:
            arr = arr.astype(dtype)
        return arr

    def astype_default(self, x):
        """Cast to default float dtype if needed."""
        return self.ensure_array(x, dtype=self.default_float)

    # -------- array creation --------
    def zeros(self, shape, dtype=None):
        return self.xp.zeros(shape, dtype=dtype or self.default_float)

    def ones(self, shape, dtype=None):
        return self.xp.ones(shape, dtype=dtype or self.default_float)

    # -------- math / linalg (thin wrappers) --------
    def sqrt(self, x):                             return self.xp.sqrt(x)
    def exp(self, x):                              return self.xp.exp(x)
    def maximum(self, a, b):                       return self.xp.maximum(a, b)
    def sum(self, x, axis=None, keepdims=False):   return self.xp.sum(x, axis=axis, keepdims=keepdims)
    def mean(self, x, axis=None, keepdims=False):  return self.xp.mean(x, axis=axis, keepdims=keepdims)
    def transpose(self, x, axes=None):             return self.xp.transpose(x, axes)
    def reshape(self, x, shape):                   return self.xp.reshape(x, shape)
    def tensordot(self, a, b, axes):               return self.xp.tensordot(a, b, axes=axes)

    # -------- sliding window (conv helper) --------
    def sliding_window_view(self, x, window_shape, axis=None):
        """
        Device-aware read-only sliding_window_view.
        CuPy releases without stride_tricks go through the CPU (copy).
        """
        stride_tricks = getattr(getattr(self.xp, "lib", None), "stride_tricks", None)
        if stride_tricks is not None and hasattr(stride_tricks, "sliding_window_view"):
            return stride_tricks.sliding_window_view(x, window_shape, axis=axis)
        v = np.lib.stride_tricks.sliding_window_view(self.to_cpu(x), window_shape, axis=axis)
        return self.ensure_array(np.ascontiguousarray(v))

    # -------- randomness / padding --------
    @property
    def random(self):
        return self.xp.random

    def seed(self, seed=42):
        """Seed RNG for reproducibility."""
        if self.use_gpu:
            cp.random.seed(seed)
        np.random.seed(seed)

    def pad(self, array, pad_width, mode="constant", **kwargs):
        return self.xp.pad(array, pad_width, mode=mode, **kwargs)

    # -------- GPU sync --------
    def synchronize(self):
        """Block until all queued GPU kernels complete (for timing)."""
        if self.use_gpu:
            cp.cuda.Stream.null.synchronize()


# Global backend instance - can be overridden
backend = Backend(use_gpu=True)
