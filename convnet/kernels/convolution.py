from ..helpers.Backend import backend


def _check_4d(name, x):
    if x.ndim != 4:
        raise ValueError(f"{name} must be 4D (batch, channels, H, W), got shape {x.shape}")


def correlate_forward(x, w):
    """
    Valid-mode, stride 1 correlation of a batch with a filter bank.

    x: (B, C, H, W)
    w: (K, C, fh, fw)
    returns: (B, K, H - fh + 1, W - fw + 1)
    """
    _check_4d("input", x)
    _check_4d("weights", w)
    if x.shape[1] != w.shape[1]:
        raise ValueError(f"input has {x.shape[1]} channels, weights expect {w.shape[1]}")
    fh, fw = w.shape[2], w.shape[3]

    # windows: (B, C, H_out, W_out, fh, fw)
    windows = backend.sliding_window_view(x, (fh, fw), axis=(2, 3))

    # contract channels and window offsets with each filter
    # result: (B, H_out, W_out, K)
    out = backend.tensordot(windows, w, axes=([1, 4, 5], [1, 2, 3]))
    return backend.transpose(out, (0, 3, 1, 2))


def correlate_backward(errors, w):
    """
    Full correlation with the flipped filters, the transpose of correlate_forward.
    Each output error is spread back over the inputs it was computed from.

    errors: (B, K, H_out, W_out)
    w:      (K, C, fh, fw)
    returns: (B, C, H_out + fh - 1, W_out + fw - 1)
    """
    _check_4d("errors", errors)
    _check_4d("weights", w)
    if errors.shape[1] != w.shape[0]:
        raise ValueError(f"errors have {errors.shape[1]} channels, weights have {w.shape[0]} filters")
    fh, fw = w.shape[2], w.shape[3]

    ep = backend.pad(errors, ((0, 0), (0, 0), (fh - 1, fh - 1), (fw - 1, fw - 1)), mode="constant")
    windows = backend.sliding_window_view(ep, (fh, fw), axis=(2, 3))  # (B, K, H, W, fh, fw)

    w_flipped = w[:, :, ::-1, ::-1]
    out = backend.tensordot(windows, w_flipped, axes=([1, 4, 5], [0, 2, 3]))  # (B, H, W, C)
    return backend.transpose(out, (0, 3, 1, 2))


def correlate_backward_filter(x, errors):
    """
    Filter gradient: correlation of the input with the output errors, summed over the batch.

    x:      (B, C, H, W)
    errors: (B, K, H_out, W_out)
    returns: (K, C, H - H_out + 1, W - W_out + 1)
    """
    _check_4d("input", x)
    _check_4d("errors", errors)
    if x.shape[0] != errors.shape[0]:
        raise ValueError(f"batch mismatch: input {x.shape[0]} vs errors {errors.shape[0]}")
    oh, ow = errors.shape[2], errors.shape[3]

    windows = backend.sliding_window_view(x, (oh, ow), axis=(2, 3))  # (B, C, fh, fw, H_out, W_out)
    out = backend.tensordot(windows, errors, axes=([0, 4, 5], [0, 2, 3]))  # (C, fh, fw, K)
    return backend.transpose(out, (3, 0, 1, 2))


def bias_add_4d(x, b):
    # b: (K,) broadcast over batch and space
    return x + backend.reshape(b, (1, -1, 1, 1))


def bias_batch_sum_4d(errors):
    # (B, K, H, W) -> (K,)
    return backend.sum(errors, axis=(0, 2, 3))


def output_dims(in_dims, filter_dims):
    """out_dim = in_dim - filter_dim + 1 for each spatial axis."""
    return tuple(int(i) - int(f) + 1 for i, f in zip(in_dims, filter_dims))
