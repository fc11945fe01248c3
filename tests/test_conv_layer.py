import numpy as np
import pytest

from convnet.layers import ConvLayer, LayerKind, dyn_init
from convnet.kernels import correlate_forward
from convnet.helpers.Backend import backend
from convnet.helpers.timers import timers
from conftest import to_np, naive_correlate


def make_context(layer, batch_size):
    return layer.create_context(batch_size, (layer.nc, layer.nv1, layer.nv2))


@pytest.mark.parametrize("nc,nv1,nv2,k,nw1,nw2", [
    (1, 28, 28, 6, 5, 5),
    (3, 8, 6, 2, 3, 3),
    (2, 5, 5, 4, 5, 5),
    (1, 4, 9, 1, 1, 3),
])
def test_shape_algebra(nc, nv1, nv2, k, nw1, nw2):
    layer = ConvLayer(nc, nv1, nv2, k, nw1, nw2)

    assert (layer.nh1, layer.nh2) == (nv1 - nw1 + 1, nv2 - nw2 + 1)
    assert layer.weights.shape == (k, nc, nw1, nw2)
    assert layer.biases.shape == (k,)
    assert layer.input_size() == nc * nv1 * nv2
    assert layer.output_size() == k * layer.nh1 * layer.nh2
    assert layer.num_parameters() == k * nw1 * nw2

    out = layer.batch_activate_hidden(np.ones((2, nc, nv1, nv2), dtype=np.float32))
    assert out.shape == (2, k, layer.nh1, layer.nh2)


def test_filter_larger_than_input_fails():
    with pytest.raises(ValueError, match="larger than its input"):
        ConvLayer(1, 4, 4, 2, 5, 3)


def test_partial_shape_fails():
    with pytest.raises(ValueError):
        ConvLayer(1, 5, 5)


def test_non_positive_dimension_fails():
    with pytest.raises(ValueError, match="nc"):
        ConvLayer(0, 5, 5, 1, 3, 3)


@pytest.mark.parametrize("dims,name", [
    ((1, 5.7, 5, 1, 3, 3), "nv1"),
    ((1, 5, 5, 2, 2.5, 3), "nw1"),
    ((1.5, 5, 5, 1, 3, 3), "nc"),
])
def test_fractional_dimension_fails(dims, name):
    with pytest.raises(ValueError, match=f"{name} must be an integer"):
        ConvLayer(*dims)


def test_integral_float_dimensions_are_accepted():
    layer = ConvLayer(1.0, 6.0, 5, 2, 3, 3.0)
    assert (layer.nv1, layer.nw2, layer.nh1) == (6, 3, 4)
    assert isinstance(layer.nv1, int)


def test_unknown_activation_fails():
    with pytest.raises(ValueError, match="Unknown activation"):
        ConvLayer(1, 5, 5, 1, 3, 3, activation="softsign")


def test_initializers_are_applied():
    layer = ConvLayer(2, 6, 6, 3, 3, 3, w_initializer="ones", b_initializer="zeros")
    assert np.all(to_np(layer.weights) == 1.0)
    assert np.all(to_np(layer.biases) == 0.0)

    seen = []

    def recording_init(tensor, input_size, output_size):
        seen.append((tensor.shape, input_size, output_size))
        tensor[...] = 0.5

    ConvLayer(2, 6, 6, 3, 3, 3, w_initializer=recording_init, b_initializer=recording_init)
    assert seen == [((3, 2, 3, 3), 72, 48), ((3,), 72, 48)]


def test_identity_zero_bias_equals_raw_correlation():
    layer = ConvLayer(3, 7, 6, 4, 3, 2, activation="identity", b_initializer="zeros")
    x = backend.astype_default(np.random.default_rng(1).standard_normal((3, 7, 6)))

    out = layer.prepare_one_output()
    result = layer.activate_hidden(out, x)

    assert result is out
    np.testing.assert_allclose(
        to_np(out), naive_correlate(to_np(x), to_np(layer.weights)), rtol=1e-4, atol=1e-5
    )


def test_box_blur_scenario():
    layer = ConvLayer(1, 5, 5, 1, 3, 3, activation="identity", b_initializer="zeros")
    layer.weights[...] = 1.0 / 9.0
    x = np.arange(25, dtype=np.float32).reshape(1, 5, 5)

    out = layer.activate_hidden(layer.prepare_one_output(), x)

    expected = np.zeros((3, 3))
    for i in range(3):
        for j in range(3):
            expected[i, j] = x[0, i:i + 3, j:j + 3].mean()
    assert out.shape == (1, 3, 3)
    np.testing.assert_allclose(to_np(out)[0], expected, rtol=1e-5)


def test_bias_and_activation_are_applied():
    layer = ConvLayer(1, 4, 4, 2, 2, 2, activation="sigmoid", w_initializer="zeros")
    layer.biases[...] = backend.ensure_array(np.array([0.0, 2.0], dtype=np.float32))

    out = to_np(layer.activate_hidden(layer.prepare_one_output(), np.ones((1, 4, 4), dtype=np.float32)))

    np.testing.assert_allclose(out[0], 0.5, rtol=1e-6)
    np.testing.assert_allclose(out[1], 1.0 / (1.0 + np.exp(-2.0)), rtol=1e-6)


def test_activate_hidden_rejects_wrong_shapes():
    layer = ConvLayer(1, 5, 5, 2, 3, 3)
    with pytest.raises(ValueError, match="expects input"):
        layer.activate_hidden(layer.prepare_one_output(), np.zeros((2, 5, 5), dtype=np.float32))
    with pytest.raises(ValueError, match="output must be"):
        layer.activate_hidden(backend.zeros((1, 3, 3)), np.zeros((1, 5, 5), dtype=np.float32))


def test_batch_independence():
    layer = ConvLayer(2, 6, 6, 3, 3, 3, activation="tanh", b_initializer="gaussian")
    sample = backend.astype_default(np.random.default_rng(2).standard_normal((2, 6, 6)))
    batch = backend.xp.stack([sample] * 4)

    batch_out = to_np(layer.batch_activate_hidden(batch))
    single = to_np(layer.activate_hidden(layer.prepare_one_output(), sample))

    for b in range(4):
        np.testing.assert_allclose(batch_out[b], batch_out[0], rtol=1e-6, atol=1e-7)
        np.testing.assert_allclose(batch_out[b], single, rtol=1e-5, atol=1e-6)


def test_flattened_batch_input_matches_4d():
    layer = ConvLayer(2, 5, 4, 3, 2, 2, activation="relu", b_initializer="gaussian")
    x = backend.astype_default(np.random.default_rng(3).standard_normal((3, 2, 5, 4)))

    out_4d = to_np(layer.batch_activate_hidden(x))
    out_2d = to_np(layer.batch_activate_hidden(backend.reshape(x, (3, 40))))

    np.testing.assert_array_equal(out_4d, out_2d)


def test_batch_output_storage_is_reused_and_checked():
    layer = ConvLayer(1, 5, 5, 2, 3, 3)
    x = np.ones((2, 1, 5, 5), dtype=np.float32)

    storage = layer.prepare_output(2)
    assert layer.batch_activate_hidden(x, output=storage) is storage

    with pytest.raises(ValueError, match="batch output"):
        layer.batch_activate_hidden(x, output=layer.prepare_output(3))
    with pytest.raises(ValueError, match="expects a batch"):
        layer.batch_activate_hidden(np.ones((2, 3, 5, 5), dtype=np.float32))


def test_adapt_errors_identity_is_noop():
    layer = ConvLayer(1, 5, 5, 2, 3, 3, activation="identity")
    ctx = make_context(layer, 2)
    ctx.output[...] = backend.astype_default(np.random.default_rng(4).random(ctx.output.shape))
    ctx.errors[...] = backend.astype_default(np.random.default_rng(5).standard_normal(ctx.errors.shape))
    before = ctx.errors.copy()

    layer.adapt_errors(ctx)

    np.testing.assert_array_equal(to_np(ctx.errors), to_np(before))


def test_adapt_errors_sigmoid_multiplies_by_derivative():
    layer = ConvLayer(1, 5, 5, 2, 3, 3, activation="sigmoid")
    ctx = make_context(layer, 2)
    o = np.random.default_rng(4).random(ctx.output.shape).astype(np.float32)
    e = np.random.default_rng(5).standard_normal(ctx.errors.shape).astype(np.float32)
    ctx.output[...] = backend.ensure_array(o)
    ctx.errors[...] = backend.ensure_array(e)

    layer.adapt_errors(ctx)

    np.testing.assert_allclose(to_np(ctx.errors), e * o * (1.0 - o), rtol=1e-5)


@pytest.mark.parametrize("batch_size", [1, 3, 8])
def test_gradient_shapes_match_parameters(batch_size):
    layer = ConvLayer(3, 6, 5, 4, 3, 2)
    ctx = make_context(layer, batch_size)
    ctx.input[...] = 1.0
    ctx.errors[...] = 1.0

    layer.compute_gradients(ctx)

    assert ctx.w_grad.shape == layer.weights.shape == (4, 3, 3, 2)
    assert ctx.b_grad.shape == layer.biases.shape == (4,)
    # every filter weight sees every output position of every sample
    np.testing.assert_allclose(to_np(ctx.w_grad), batch_size * layer.nh1 * layer.nh2)
    np.testing.assert_allclose(to_np(ctx.b_grad), batch_size * layer.nh1 * layer.nh2)


def test_gradients_are_overwritten_each_batch():
    layer = ConvLayer(1, 5, 5, 2, 3, 3)
    ctx = make_context(layer, 2)
    ctx.input[...] = 1.0
    ctx.errors[...] = 1.0

    layer.compute_gradients(ctx)
    first_w, first_b = ctx.w_grad.copy(), ctx.b_grad.copy()
    layer.compute_gradients(ctx)

    np.testing.assert_array_equal(to_np(ctx.w_grad), to_np(first_w))
    np.testing.assert_array_equal(to_np(ctx.b_grad), to_np(first_b))


def test_gradients_agree_with_finite_differences():
    """
    With identity activation, L = sum(E * output) is linear in the
    parameters, so dL/dW and dL/db are exactly the computed gradients.
    """
    rng = np.random.default_rng(6)
    layer = ConvLayer(2, 5, 5, 2, 3, 3, activation="identity")
    ctx = make_context(layer, 2)
    x = backend.astype_default(rng.standard_normal(ctx.input.shape))
    E = backend.astype_default(rng.standard_normal(ctx.errors.shape))

    ctx.input[...] = x
    ctx.errors[...] = E
    layer.compute_gradients(ctx)

    def loss():
        return float(backend.sum(layer.batch_activate_hidden(x).astype(np.float64) * E))

    eps = 0.5
    for idx in [(0, 0, 0, 0), (1, 1, 2, 1), (0, 1, 1, 2)]:
        orig = float(layer.weights[idx])
        layer.weights[idx] = orig + eps
        up = loss()
        layer.weights[idx] = orig - eps
        down = loss()
        layer.weights[idx] = orig
        assert (up - down) / (2 * eps) == pytest.approx(float(ctx.w_grad[idx]), rel=1e-3, abs=1e-3)

    orig = float(layer.biases[1])
    layer.biases[1] = orig + eps
    up = loss()
    layer.biases[1] = orig - eps
    down = loss()
    layer.biases[1] = orig
    assert (up - down) / (2 * eps) == pytest.approx(float(ctx.b_grad[1]), rel=1e-3, abs=1e-3)


def test_backward_batch_writes_transposed_correlation():
    rng = np.random.default_rng(8)
    layer = ConvLayer(2, 5, 5, 3, 3, 3, activation="identity")
    ctx = make_context(layer, 2)
    ctx.errors[...] = backend.astype_default(rng.standard_normal(ctx.errors.shape))
    x = backend.astype_default(rng.standard_normal(ctx.input.shape))

    prev_errors = backend.zeros((2, 2, 5, 5))
    layer.backward_batch(prev_errors, ctx)

    # <correlate(x, W), E> == <x, backward(E)>
    lhs = float(backend.sum(correlate_forward(x, layer.weights).astype(np.float64) * ctx.errors))
    rhs = float(backend.sum(x.astype(np.float64) * prev_errors))
    assert lhs == pytest.approx(rhs, rel=1e-4)


def test_backward_batch_into_flattened_storage():
    layer = ConvLayer(1, 4, 4, 2, 3, 3)
    ctx = make_context(layer, 3)
    ctx.errors[...] = 1.0

    flat = backend.zeros((3, 16))
    layer.backward_batch(flat, ctx)

    full = backend.zeros((3, 1, 4, 4))
    layer.backward_batch(full, ctx)
    np.testing.assert_array_equal(to_np(flat), to_np(full).reshape(3, 16))


def test_snapshot_restore_discard():
    layer = ConvLayer(1, 5, 5, 2, 3, 3, b_initializer="gaussian")
    assert not layer.has_backup
    with pytest.raises(RuntimeError, match="without a snapshot"):
        layer.restore()

    w0, b0 = layer.weights.copy(), layer.biases.copy()
    layer.snapshot()
    layer.weights += 1.0
    layer.biases -= 1.0
    layer.restore()

    np.testing.assert_array_equal(to_np(layer.weights), to_np(w0))
    np.testing.assert_array_equal(to_np(layer.biases), to_np(b0))

    layer.discard()
    assert not layer.has_backup


def test_dyn_init_populates_runtime_shaped_twin():
    fixed = ConvLayer(3, 10, 8, 4, 3, 5, activation="relu")
    twin = ConvLayer(activation="relu")

    assert twin.params() == []
    assert twin.to_short_string() == "Conv(dyn): uninitialized"
    with pytest.raises(RuntimeError):
        twin.prepare_one_output()

    assert fixed.dyn_init(twin) is twin
    assert twin.weights.shape == fixed.weights.shape
    assert twin.to_short_string() == fixed.to_short_string()

    other = dyn_init(ConvLayer(), 1, 6, 6, 2, 3, 3)
    assert other.output_one_shape == (2, 4, 4)


def test_to_short_string():
    layer = ConvLayer(1, 28, 28, 6, 5, 5, activation="sigmoid")
    assert layer.to_short_string() == "Conv: 1x28x28 -> (6x5x5) -> sigmoid -> 6x24x24"
    assert layer.kind is LayerKind.CONV
    assert layer.is_trainable


def test_output_shape_and_context():
    layer = ConvLayer(2, 6, 6, 3, 3, 3)
    assert layer.output_shape((2, 6, 6)) == (3, 4, 4)
    assert layer.output_shape((72,)) == (3, 4, 4)
    with pytest.raises(ValueError, match="expects input"):
        layer.output_shape((3, 6, 6))

    ctx = layer.create_context(5, (72,))
    assert ctx.input.shape == (5, 2, 6, 6)
    assert ctx.output.shape == ctx.errors.shape == (5, 3, 4, 4)
    assert ctx.w_inc.shape == (3, 2, 3, 3)
    assert ctx.b_inc.shape == (3,)


def test_methods_are_timed():
    layer = ConvLayer(1, 5, 5, 1, 3, 3)
    ctx = make_context(layer, 1)
    layer.batch_activate_hidden(ctx.input, output=ctx.output)
    layer.adapt_errors(ctx)
    layer.compute_gradients(ctx)

    summary = timers.summary()
    for name in ("conv:forward_batch", "conv:adapt_errors", "conv:compute_gradients"):
        assert summary[name]["count"] == 1
