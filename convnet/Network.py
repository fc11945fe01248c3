import time
import numpy as np

from .loss.MSELoss import MSELoss
from .optimizer.SGDOptimizer import SGDOptimizer
from .helpers.logger import RunLogger
from .helpers.Backend import backend


class Network:
    """
    A chain of layers trained by mini-batch SGD.

    Shapes are propagated once, here, and every layer position gets its own
    TrainingContext sized for ``batch_size``.
    """

    def __init__(self, layers, input_shape, batch_size=32, verbose=1):
        if len(layers) == 0:
            raise ValueError("Network needs at least one layer")
        self.layers = list(layers)
        self.input_shape = tuple(input_shape)
        self.batch_size = int(batch_size)
        self.verbose = verbose

        # shapes[i] is the input of layer i, shapes[-1] the network output
        self.shapes = [self.input_shape]
        for i, L in enumerate(self.layers):
            try:
                self.shapes.append(tuple(L.output_shape(self.shapes[-1])))
            except ValueError as e:
                raise ValueError(f"layer {i} ({L.to_short_string()}): {e}") from e

        self.contexts = [
            L.create_context(self.batch_size, shape) for L, shape in zip(self.layers, self.shapes[:-1])
        ]

    @property
    def output_shape(self):
        return self.shapes[-1]

    def describe(self):
        return [L.to_short_string() for L in self.layers]

    # ================== passes ==================
    def forward(self, x):
        """
        x: (batch_size, *input_shape) or flattened (batch_size, input_size)
        return: the last context's output (batch_size, *output_shape)
        """
        x = backend.ensure_array(x)
        self.contexts[0].check_batch(x)
        for L, ctx in zip(self.layers, self.contexts):
            if x.size != ctx.input.size:
                raise ValueError(f"{L.to_short_string()} expects input {ctx.input.shape}, got {x.shape}")
            ctx.input[...] = backend.reshape(x, ctx.input.shape)
            L.batch_activate_hidden(ctx.input, output=ctx.output)
            ctx.mark_forward()
            x = ctx.output
        return x

    def backward(self, errors):
        """
        Inject ``errors`` at the last layer and propagate them back to front.
        Gradients are left in each context for the optimizer.
        """
        errors = backend.ensure_array(errors)
        last = self.contexts[-1]
        last.check_batch(errors, name="errors")
        if errors.size != last.errors.size:
            raise ValueError(f"errors must match the network output {last.errors.shape}, got {errors.shape}")
        last.errors[...] = backend.reshape(errors, last.errors.shape)

        for i in reversed(range(len(self.layers))):
            L, ctx = self.layers[i], self.contexts[i]
            ctx.mark_backward()
            L.adapt_errors(ctx)
            if i > 0:
                L.backward_batch(self.contexts[i - 1].errors, ctx)
            L.compute_gradients(ctx)

    def train_batch(self, x, y, loss_fn, optimizer):
        output = self.forward(x)
        loss = loss_fn.forward(output, y)
        self.backward(loss_fn.backward())
        optimizer.step(self.layers, self.contexts)
        return loss

    def predict(self, x, batch_size=256):
        """Forward any number of samples without touching the training contexts."""
        x = backend.ensure_array(x)
        outs = []
        for xb in self._batchify(x, batch_size):
            for L in self.layers:
                xb = L.batch_activate_hidden(xb)
            outs.append(xb)
        return backend.xp.concatenate(outs, axis=0)

    def evaluate(self, x, y, loss_fn=None):
        if loss_fn is None:
            loss_fn = MSELoss()
        return loss_fn.forward(self.predict(x), y)

    # ================== backups ==================
    def snapshot(self):
        for L in self.layers:
            if L.is_trainable:
                L.snapshot()

    def restore(self):
        for L in self.layers:
            if L.is_trainable:
                L.restore()

    def discard(self):
        for L in self.layers:
            if L.is_trainable:
                L.discard()

    # ================== training ==================
    def fit(
        self,
        x,
        y,
        epochs=10,
        lr=0.01,
        momentum=0.9,
        weight_decay=0.0,
        lr_driver="fixed",
        lr_bold_inc=1.05,
        lr_bold_dec=0.5,
        shuffle=True,
        seed=None,
        tag="run",
        runs_root=None,
    ):
        """
        Train on full mini-batches of ``batch_size``; trailing samples that do
        not fill a batch are skipped for that epoch.

        lr_driver 'bold': after every epoch, a worse loss rolls the weights back
        to the last snapshot and multiplies the learning rate by lr_bold_dec,
        a better one keeps them and multiplies it by lr_bold_inc.
        """
        if lr_driver not in ("fixed", "bold"):
            raise ValueError(f"Unknown lr_driver: {lr_driver}")
        if seed is not None:
            backend.seed(seed)

        x = backend.ensure_array(x)
        y = backend.ensure_array(y)
        N = x.shape[0]
        if N < self.batch_size:
            raise ValueError(f"need at least batch_size={self.batch_size} samples, got {N}")

        loss_fn = MSELoss()
        optimizer = SGDOptimizer(lr=lr, momentum=momentum, weight_decay=weight_decay)
        history = {"loss": [], "lr": []}
        logger = RunLogger(root=runs_root, tag=tag) if runs_root is not None else None

        bold = lr_driver == "bold"
        if bold:
            self.snapshot()
            last_loss = self.evaluate(x, y, loss_fn)

        if self.verbose > 0:
            print(f"Starting training for {epochs} epochs...")
        for ep in range(1, epochs + 1):
            t0 = time.time()
            idx = np.arange(N)
            if shuffle:
                np.random.shuffle(idx)
            idx = backend.ensure_array(idx)
            Xs = x[idx]
            Ys = y[idx]

            for xb, yb in self._batchify(Xs, self.batch_size, labels=Ys, drop_last=True):
                self.train_batch(xb, yb, loss_fn, optimizer)

            train_loss = self.evaluate(x, y, loss_fn)

            if bold:
                if not np.isfinite(train_loss) or train_loss > last_loss:
                    self.restore()
                    self._reset_momentum()
                    optimizer.lr *= lr_bold_dec
                    train_loss = last_loss
                else:
                    optimizer.lr *= lr_bold_inc
                    self.snapshot()
                    last_loss = train_loss

            history["loss"].append(train_loss)
            history["lr"].append(optimizer.lr)

            # logging (console)
            if self.verbose > 0:
                log_interval = max(1, epochs // 10)
                if ep % log_interval == 0 or ep == 1 or ep == epochs:
                    print(f"Epoch {ep}/{epochs} - loss: {train_loss:.6f} - lr: {optimizer.lr:.6f}")

            # logging (files)
            if logger is not None:
                logger.log_epoch(ep, time_s=time.time() - t0, loss=train_loss, lr=optimizer.lr)

        if bold:
            self.discard()
        if logger is not None:
            logger.save_json(self.layers)
        return history

    # ================== helpers ==================
    def _batchify(self, X, batch_size, labels=None, drop_last=False):
        N = X.shape[0]
        start = 0
        while start < N:
            end = min(start + batch_size, N)
            if drop_last and end - start < batch_size:
                return
            if labels is None:
                yield X[start:end]
            else:
                yield X[start:end], labels[start:end]
            start = end

    def _reset_momentum(self):
        for ctx in self.contexts:
            if ctx.has_parameters:
                ctx.w_inc[...] = 0.0
                ctx.b_inc[...] = 0.0
