from .Layer import Layer, LayerKind
from ..context.TrainingContext import TrainingContext


class TransformLayer(Layer):
    """
    Fixed, non-trainable transform. Output has the input's shape and the
    errors flow through to the previous layer unchanged.
    """

    kind = LayerKind.TRANSFORM

    def output_shape(self, input_shape):
        return tuple(input_shape)

    def create_context(self, batch_size, input_shape):
        return TrainingContext(batch_size, input_shape, self.output_shape(input_shape))

    def adapt_errors(self, context):
        pass

    def backward_batch(self, output, context):
        output[...] = context.errors.reshape(output.shape)

    def compute_gradients(self, context):
        pass
