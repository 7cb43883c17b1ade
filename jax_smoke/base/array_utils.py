# Copyright 2021 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""
Small array helpers shared by the solver stages.

The vectorised stages read neighbouring samples by shifting whole arrays
rather than indexing cell by cell. Shifts wrap around at the array edges; the
callers only use shifted values inside masks that exclude the wrapped border
samples.
"""

from typing import Union

import jax
import jax.numpy as jnp
import numpy as np

# --- Type Aliases ---
Array = Union[np.ndarray, jax.Array]


def _normalize_axis(axis: int, ndim: int) -> int:
  """Validates an axis index and converts negative indices to positive ones."""
  if not -ndim <= axis < ndim:
    raise ValueError(f'invalid axis {axis} for ndim {ndim}')
  if axis < 0:
    axis += ndim
  return axis


def shift(array: Array, offset: int, axis: int) -> Array:
  """
  Returns `array` shifted so that entry `i` holds the value at `i + offset`.

  For example `shift(u, +1, axis=0)[i, j] == u[i + 1, j]` away from the edges.
  Values shifted past an edge wrap around to the other side.

  Args:
    array: The array to shift.
    offset: Number of cells to look ahead (positive) or behind (negative).
    axis: Axis along which to shift.

  Returns:
    An array of the same shape as `array`.
  """
  axis = _normalize_axis(axis, array.ndim)
  return jnp.roll(array, -offset, axis=axis)


def ravel_field(array: Array) -> jax.Array:
  """
  Flattens a field into the `i * num_y + j` layout shared by every field.
  """
  return jnp.ravel(jnp.asarray(array), order='C')
