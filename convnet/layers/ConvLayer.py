from collections import namedtuple

from .Layer import Layer, LayerKind
from ..context.TrainingContext import TrainingContext
from ..helpers.Backend import backend
from ..helpers.activations import get_activation
from ..helpers.initializers import get_initializer
from ..helpers.timers import timers
from ..kernels.convolution import (
    correlate_forward,
    correlate_backward,
    correlate_backward_filter,
    bias_add_4d,
    bias_batch_sum_4d,
    output_dims,
)

ParameterSnapshot = namedtuple("ParameterSnapshot", ["weights", "biases"])


class ConvLayer(Layer):
    """
    Standard convolutional layer (valid-mode correlation, stride 1, no padding).

    weights: (k, nc, nw1, nw2)
    biases:  (k,)
    one input:  (nc, nv1, nv2) or flattened (nc*nv1*nv2,)
    one output: (k, nh1, nh2) with nh = nv - nw + 1

    The shape can be given at construction or later through init_layer()
    when it is only known at model-assembly time.
    """

    kind = LayerKind.CONV

    def __init__(
        self,
        nc=None,
        nv1=None,
        nv2=None,
        k=None,
        nw1=None,
        nw2=None,
        activation="sigmoid",
        w_initializer="lecun",
        b_initializer="zeros",
    ):
        self.activation = get_activation(activation)
        self.w_initializer = get_initializer(w_initializer)
        self.b_initializer = get_initializer(b_initializer)

        self.weights = None
        self.biases = None
        self._backup = None  # ParameterSnapshot, only while a trainer asks for it

        shape = (nc, nv1, nv2, k, nw1, nw2)
        if all(d is not None for d in shape):
            self.init_layer(*shape)
        elif any(d is not None for d in shape):
            raise ValueError(f"ConvLayer needs all of nc, nv1, nv2, k, nw1, nw2 or none of them, got {shape}")

    def init_layer(self, nc, nv1, nv2, k, nw1, nw2):
        dims = {"nc": nc, "nv1": nv1, "nv2": nv2, "k": k, "nw1": nw1, "nw2": nw2}
        for name, d in dims.items():
            if int(d) != d:
                raise ValueError(f"ConvLayer dimension {name} must be an integer, got {d}")
            dims[name] = int(d)
            if dims[name] < 1:
                raise ValueError(f"ConvLayer dimension {name} must be >= 1, got {d}")
        nc, nv1, nv2, k, nw1, nw2 = dims.values()
        if nw1 > nv1 or nw2 > nv2:
            raise ValueError(f"ConvLayer filter {nw1}x{nw2} is larger than its input {nv1}x{nv2}")

        self.nc, self.nv1, self.nv2 = nc, nv1, nv2
        self.k, self.nw1, self.nw2 = k, nw1, nw2
        self.nh1, self.nh2 = output_dims((self.nv1, self.nv2), (self.nw1, self.nw2))

        self.weights = backend.zeros((self.k, self.nc, self.nw1, self.nw2))
        self.biases = backend.zeros((self.k,))
        self.w_initializer(self.weights, self.input_size(), self.output_size())
        self.b_initializer(self.biases, self.input_size(), self.output_size())
        self._backup = None

    # ----- shapes -----
    def _require_init(self):
        if self.weights is None:
            raise RuntimeError("ConvLayer used before init_layer()")

    def input_size(self):
        return self.nc * self.nv1 * self.nv2

    def output_size(self):
        return self.k * self.nh1 * self.nh2

    def num_parameters(self):
        # each filter spans every input channel
        return self.k * self.nw1 * self.nw2

    @property
    def input_one_shape(self):
        return (self.nc, self.nv1, self.nv2)

    @property
    def output_one_shape(self):
        return (self.k, self.nh1, self.nh2)

    def output_shape(self, input_shape):
        self._require_init()
        input_shape = tuple(input_shape)
        if input_shape not in (self.input_one_shape, (self.input_size(),)):
            raise ValueError(
                f"ConvLayer expects input {self.input_one_shape} or ({self.input_size()},), got {input_shape}"
            )
        return self.output_one_shape

    def prepare_one_output(self):
        self._require_init()
        return backend.zeros(self.output_one_shape)

    def prepare_output(self, samples):
        self._require_init()
        return backend.zeros((samples,) + self.output_one_shape)

    def create_context(self, batch_size, input_shape=None):
        if input_shape is not None:
            self.output_shape(input_shape)
        self._require_init()
        return TrainingContext(
            batch_size,
            self.input_one_shape,
            self.output_one_shape,
            w_shape=self.weights.shape,
            b_shape=self.biases.shape,
        )

    def _as_batch(self, x):
        x = backend.ensure_array(x)
        if x.ndim == 2 and x.shape[1] == self.input_size():
            return backend.reshape(x, (x.shape[0],) + self.input_one_shape)
        if x.ndim == 4 and x.shape[1:] == self.input_one_shape:
            return x
        raise ValueError(
            f"ConvLayer expects a batch (B, {self.nc}, {self.nv1}, {self.nv2}) "
            f"or (B, {self.input_size()}), got {x.shape}"
        )

    def to_short_string(self):
        if self.weights is None:
            return "Conv(dyn): uninitialized"
        return (
            f"Conv: {self.nc}x{self.nv1}x{self.nv2} -> ({self.k}x{self.nw1}x{self.nw2}) "
            f"-> {self.activation.name} -> {self.k}x{self.nh1}x{self.nh2}"
        )

    # ----- forward -----
    def activate_hidden(self, output, x):
        """
        One sample: output = f(correlate(x, W) + b), written into ``output`` (k, nh1, nh2).
        """
        with timers.scope("conv:forward"):
            self._require_init()
            x = backend.ensure_array(x)
            if x.shape not in (self.input_one_shape, (self.input_size(),)):
                raise ValueError(f"ConvLayer expects input {self.input_one_shape}, got {x.shape}")
            if output.shape != self.output_one_shape:
                raise ValueError(f"ConvLayer output must be {self.output_one_shape}, got {output.shape}")

            raw = correlate_forward(backend.reshape(x, (1,) + self.input_one_shape), self.weights)[0]
            output[...] = self.activation.activate(raw + backend.reshape(self.biases, (-1, 1, 1)))
            return output

    def batch_activate_hidden(self, x, output=None):
        """
        Batch forward.
        x: (B, nc, nv1, nv2) or (B, nc*nv1*nv2)
        return: (B, k, nh1, nh2), the given ``output`` when provided
        """
        with timers.scope("conv:forward_batch"):
            self._require_init()
            x = self._as_batch(x)
            expected = (x.shape[0],) + self.output_one_shape
            if output is None:
                output = self.prepare_output(x.shape[0])
            elif output.shape != expected:
                raise ValueError(f"ConvLayer batch output must be {expected}, got {output.shape}")

            raw = correlate_forward(x, self.weights)
            output[...] = self.activation.activate(bias_add_4d(raw, self.biases))
            return output

    # ----- backward -----
    def adapt_errors(self, context):
        with timers.scope("conv:adapt_errors"):
            if not self.activation.is_identity:
                context.errors *= self.activation.derivative(context.output)

    def backward_batch(self, output, context):
        """
        Errors for the previous layer, the transposed correlation of the
        errors with the filters, written into ``output``.
        """
        with timers.scope("conv:backward_batch"):
            grad_in = correlate_backward(context.errors, self.weights)  # (B, nc, nv1, nv2)
            output[...] = backend.reshape(grad_in, output.shape)

    def compute_gradients(self, context):
        with timers.scope("conv:compute_gradients"):
            x = backend.reshape(context.input, (context.batch_size,) + self.input_one_shape)
            context.w_grad[...] = correlate_backward_filter(x, context.errors)
            context.b_grad[...] = bias_batch_sum_4d(context.errors)

    # ----- backup weights -----
    def snapshot(self):
        self._require_init()
        self._backup = ParameterSnapshot(self.weights.copy(), self.biases.copy())

    def restore(self):
        if self._backup is None:
            raise RuntimeError("ConvLayer.restore() called without a snapshot")
        self.weights[...] = self._backup.weights
        self.biases[...] = self._backup.biases

    def discard(self):
        self._backup = None

    @property
    def has_backup(self):
        return self._backup is not None

    # ----- dynamic twin -----
    def dyn_init(self, target):
        """Initialize a runtime-shaped twin layer with this layer's shape."""
        self._require_init()
        return dyn_init(target, self.nc, self.nv1, self.nv2, self.k, self.nw1, self.nw2)

    # expose params for the optimizer
    def params(self):
        if self.weights is None:
            return []
        return [self.weights, self.biases]


def dyn_init(target_layer, channels, h, w, filters, fh, fw):
    target_layer.init_layer(channels, h, w, filters, fh, fw)
    return target_layer
