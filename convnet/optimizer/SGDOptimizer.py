class SGDOptimizer:
    """
    Momentum SGD. Gradients and momentum increments live in each layer's
    TrainingContext; the weights are only touched here, between batches.
    """

    def __init__(self, lr=1e-2, momentum=0.9, weight_decay=0.0):
        self.lr = lr
        self.momentum = momentum
        self.wd = weight_decay

    def step(self, layers, contexts):
        for L, ctx in zip(layers, contexts):
            if not ctx.has_parameters:
                continue
            w, b = L.params()
            if self.wd != 0.0:
                ctx.w_inc[...] = self.momentum * ctx.w_inc - self.lr * (ctx.w_grad + self.wd * w)  # L2 weight decay
            else:
                ctx.w_inc[...] = self.momentum * ctx.w_inc - self.lr * ctx.w_grad
            ctx.b_inc[...] = self.momentum * ctx.b_inc - self.lr * ctx.b_grad
            w += ctx.w_inc
            b += ctx.b_inc

    def zero_grad(self, contexts):
        for ctx in contexts:
            if ctx.has_parameters:
                ctx.w_grad[...] = 0.0
                ctx.b_grad[...] = 0.0
