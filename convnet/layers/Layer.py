from enum import Enum


class LayerKind(Enum):
    CONV = "conv"
    TRANSFORM = "transform"
    DENSE = "dense"
    POOLING = "pooling"
    RBM = "rbm"


class Layer:
    kind = None

    @property
    def is_trainable(self):
        return len(self.params()) > 0

    # Subclasses override as needed
    def output_shape(self, input_shape):
        # Shape of one output sample given the shape of one input sample
        raise NotImplementedError

    def create_context(self, batch_size, input_shape):
        # Return a TrainingContext sized for this layer
        raise NotImplementedError

    def activate_hidden(self, output, x):
        # Single sample forward, written into output
        raise NotImplementedError

    def batch_activate_hidden(self, x, output=None):
        # Batch forward, written into output (allocated when None) and returned
        raise NotImplementedError

    def adapt_errors(self, context):
        # Chain the activation derivative into context.errors
        raise NotImplementedError

    def backward_batch(self, output, context):
        # Write the errors for the previous layer into output
        raise NotImplementedError

    def compute_gradients(self, context):
        # Fill context.w_grad / context.b_grad
        raise NotImplementedError

    def to_short_string(self):
        raise NotImplementedError

    def params(self):
        # Return list of parameter ndarrays (e.g., [W, b])
        return []

    def __repr__(self):
        return self.to_short_string()
