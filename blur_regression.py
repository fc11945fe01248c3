# blur_regression.py
import numpy as np

from convnet import Network, ConvLayer, LCNLayer, backend, timers
from convnet.helpers.logger import RunLogger
from convnet.kernels import correlate_forward


def make_data(n, size=12, seed=0):
    """Random images and their contrast-normalized 3x3 box blur."""
    rng = np.random.default_rng(seed)
    x = rng.standard_normal((n, 1, size, size)).astype(np.float32)
    box = np.full((1, 1, 3, 3), 1.0 / 9.0, dtype=np.float32)
    blurred = correlate_forward(backend.ensure_array(x), backend.ensure_array(box))
    y = LCNLayer(3).batch_activate_hidden(blurred)
    return x, backend.to_cpu(y)


def test(lr_driver, lr, epochs):
    x, y = make_data(256)

    conv = ConvLayer(1, 12, 12, 1, 3, 3, activation="identity")
    model = Network([conv, LCNLayer(3)], input_shape=(1, 12, 12), batch_size=32)
    print("Layers:", " | ".join(model.describe()))

    history = model.fit(x, y, epochs=epochs, lr=lr, momentum=0.9, lr_driver=lr_driver, tag=lr_driver, runs_root="runs")

    print(f"Final loss ({lr_driver}): {history['loss'][-1]:.6f}")
    print("Learned filter:")
    print(np.round(backend.to_cpu(conv.weights[0, 0]), 3))
    return history


if __name__ == "__main__":
    backend.seed(0)

    for driver, lr in (("fixed", 0.005), ("bold", 0.05)):
        timers.reset()
        history = test(driver, lr, epochs=30)
        RunLogger(root="runs", tag=f"{driver}_plots").plot_loss(history, tag=driver)
        timers.dump()
