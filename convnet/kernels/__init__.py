from .convolution import (
    correlate_forward,
    correlate_backward,
    correlate_backward_filter,
    bias_add_4d,
    bias_batch_sum_4d,
    output_dims,
)
from .lcn import lcn_filter, lcn_compute

__all__ = [
    "correlate_forward",
    "correlate_backward",
    "correlate_backward_filter",
    "bias_add_4d",
    "bias_batch_sum_4d",
    "output_dims",
    "lcn_filter",
    "lcn_compute",
]
