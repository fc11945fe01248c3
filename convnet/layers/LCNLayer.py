from .TransformLayer import TransformLayer
from ..helpers.Backend import backend
from ..helpers.timers import timers
from ..kernels.lcn import lcn_filter, lcn_compute


class LCNLayer(TransformLayer):
    """Local Contrast Normalization layer"""

    def __init__(self, kernel_size=None, sigma=2.0):
        self.sigma = float(sigma)
        self.kernel_size = None
        self.mid = None
        if kernel_size is not None:
            self.init_layer(kernel_size)

    def init_layer(self, kernel_size):
        if kernel_size <= 1:
            raise ValueError(f"The LCN kernel size must be greater than 1, got {kernel_size}")
        if kernel_size % 2 != 1:
            raise ValueError(f"The LCN kernel size must be odd, got {kernel_size}")
        self.kernel_size = int(kernel_size)
        self.mid = self.kernel_size // 2

    def _require_init(self):
        if self.kernel_size is None:
            raise RuntimeError("LCNLayer used before init_layer()")

    def to_short_string(self):
        if self.kernel_size is None:
            return "LCN(dyn): uninitialized"
        return f"LCN: {self.kernel_size}x{self.kernel_size}"

    def output_shape(self, input_shape):
        if len(input_shape) not in (2, 3):
            raise ValueError(f"LCNLayer expects (C, H, W) or (H, W) samples, got {tuple(input_shape)}")
        return tuple(input_shape)

    def filter(self):
        # rebuilt on every call, the layer keeps no state besides K and sigma
        self._require_init()
        return lcn_filter(self.kernel_size, self.mid, self.sigma)

    def activate_hidden(self, output, x):
        """
        One sample (C, H, W) or (H, W); ``output`` has the same shape.
        """
        with timers.scope("lcn:forward"):
            self._require_init()
            x = backend.ensure_array(x)
            if x.ndim not in (2, 3):
                raise ValueError(f"LCNLayer expects (C, H, W) or (H, W), got {x.shape}")
            if output.shape != x.shape:
                raise ValueError(f"LCNLayer output must match input shape {x.shape}, got {output.shape}")
            if output.dtype.kind != "f":
                raise ValueError(f"LCNLayer output must be floating point, got {output.dtype}")

            lcn_compute(output, x, self.filter(), self.mid)
            return output

    def batch_activate_hidden(self, x, output=None):
        x = backend.ensure_array(x)
        if x.dtype.kind != "f":
            x = backend.astype_default(x)
        if output is None:
            output = backend.zeros(x.shape, dtype=x.dtype)
        elif output.shape != x.shape:
            raise ValueError(f"LCNLayer batch output must match input shape {x.shape}, got {output.shape}")

        with timers.scope("lcn:forward_batch"):
            for b in range(x.shape[0]):
                self.activate_hidden(output[b], x[b])
        return output
