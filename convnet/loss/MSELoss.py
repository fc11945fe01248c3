from ..helpers.Backend import backend


class MSELoss:
    def __init__(self):
        # cache from forward
        self.diff = None
        self.m = None

    def forward(self, output, target):
        """
        output: (batch, ...) activations of the last layer
        target: same number of values per sample
        returns: loss scalar, 0.5 * sum((output - target)^2) / batch
        """
        output = backend.ensure_array(output)
        target = backend.reshape(backend.ensure_array(target), output.shape)

        self.m = output.shape[0]
        self.diff = output - target
        return float(0.5 * backend.sum(self.diff * self.diff) / self.m)

    def backward(self):
        """
        dL/doutput = (output - target)/m
        """
        if self.diff is None or self.m is None:
            raise ValueError("Must call forward() before backward()")
        return self.diff / self.m
