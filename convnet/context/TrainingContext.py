from enum import Enum

from ..helpers.Backend import backend


class ContextState(Enum):
    CONSTRUCTED = "constructed"
    FORWARD = "forward"    # input/output populated
    BACKWARD = "backward"  # errors/gradients populated


class TrainingContext:
    """
    Per-layer, per-network scratch state for one mini-batch.

    input/output/errors: (batch_size, *shape) batch tensors
    w_grad/b_grad:       gradients, overwritten on every batch
    w_inc/b_inc:         optimizer momentum, kept across batches

    The batch size is fixed here; a different batch size needs a new context.
    """

    def __init__(self, batch_size, input_shape, output_shape, w_shape=None, b_shape=None):
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.batch_size = int(batch_size)
        self.input_shape = tuple(input_shape)
        self.output_shape = tuple(output_shape)

        self.input = backend.zeros((self.batch_size,) + self.input_shape)
        self.output = backend.zeros((self.batch_size,) + self.output_shape)
        self.errors = backend.zeros((self.batch_size,) + self.output_shape)

        self.w_grad = self.b_grad = self.w_inc = self.b_inc = None
        if w_shape is not None:
            self.w_grad = backend.zeros(w_shape)
            self.b_grad = backend.zeros(b_shape)
            self.w_inc = backend.zeros(w_shape)
            self.b_inc = backend.zeros(b_shape)

        self.state = ContextState.CONSTRUCTED

    @property
    def has_parameters(self):
        return self.w_grad is not None

    def check_batch(self, x, name="input"):
        if x.shape[0] != self.batch_size:
            raise ValueError(
                f"{name} batch size {x.shape[0]} does not match context batch size {self.batch_size}"
            )

    def mark_forward(self):
        self.state = ContextState.FORWARD

    def mark_backward(self):
        if self.state is not ContextState.FORWARD:
            raise RuntimeError(f"backward pass on a context in state '{self.state.value}', run forward first")
        self.state = ContextState.BACKWARD
