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
Interpolation of staggered fields.

Two kinds of interpolation are needed by the semi-Lagrangian advector:

1.  **Point sampling** (`sample_field`): bilinear interpolation of `u`, `v`
    or the dye at arbitrary physical coordinates. Each field is sampled
    relative to its own sub-cell offset (see `grids.Field`), and both the
    coordinates and the stencil indices are clamped, so queries outside the
    domain degrade to edge values instead of failing.

2.  **Staggered transfers** (`average_u`, `average_v`,
    `cell_centered_velocity`): estimates of one velocity component at the
    location where the other component, or the dye, is stored.
"""

from typing import Tuple, Union

import jax
import jax.numpy as jnp
from jax_smoke.base import array_utils
from jax_smoke.base import grids

# --- Type Aliases ---
Array = grids.Array
Field = grids.Field
FluidState = grids.FluidState


def sample_field(
    state: FluidState,
    field: Field,
    x: Union[float, Array],
    y: Union[float, Array],
) -> jax.Array:
  """
  Bilinearly interpolates `field` at physical coordinates `(x, y)`.

  The function is element-wise: `x` and `y` may be scalars or arrays of the
  same shape, and the result has that shape.

  The coordinates are first clamped into `[h, num_x * h] x [h, num_y * h]`.
  The field's offset is then subtracted, which turns the coordinate into a
  position in the field's own sample lattice. The enclosing 2x2 stencil is
  `(x0, y0)`..`(x1, y1)` with fractional weights `(tx, ty)`; all indices are
  clamped into the array.

  Args:
    state: The state to read the field from.
    field: Which field to sample.
    x: Physical x coordinate(s).
    y: Physical y coordinate(s).

  Returns:
    The interpolated value(s).
  """
  data = state.field(field)
  nx, ny = state.shape
  h = state.grid.step
  h1 = 1.0 / h

  x = jnp.clip(jnp.asarray(x, dtype=data.dtype), h, nx * h)
  y = jnp.clip(jnp.asarray(y, dtype=data.dtype), h, ny * h)

  # Shift into the field's sample lattice.
  x = x - field.offset[0] * h
  y = y - field.offset[1] * h

  x0 = jnp.clip(jnp.floor(x * h1).astype(jnp.int32), 0, nx - 1)
  tx = (x - x0 * h) * h1
  x1 = jnp.minimum(x0 + 1, nx - 1)

  y0 = jnp.clip(jnp.floor(y * h1).astype(jnp.int32), 0, ny - 1)
  ty = (y - y0 * h) * h1
  y1 = jnp.minimum(y0 + 1, ny - 1)

  sx = 1.0 - tx
  sy = 1.0 - ty
  return (sx * sy * data[x0, y0]
          + tx * sy * data[x1, y0]
          + tx * ty * data[x1, y1]
          + sx * ty * data[x0, y1])


def average_u(u: Array) -> jax.Array:
  """
  Estimates `u` at every `v` face.

  The `v` face of cell `(i, j)` is bracketed by the four `u` samples
  `(i, j-1)`, `(i, j)`, `(i+1, j-1)` and `(i+1, j)`; the estimate is their
  plain average. Only meaningful for `i < num_x - 1` and `j >= 1`.
  """
  u_below = array_utils.shift(u, -1, axis=1)
  return 0.25 * (u_below + u
                 + array_utils.shift(u_below, +1, axis=0)
                 + array_utils.shift(u, +1, axis=0))


def average_v(v: Array) -> jax.Array:
  """
  Estimates `v` at every `u` face.

  Averages `v` at `(i-1, j)`, `(i, j)`, `(i-1, j+1)` and `(i, j+1)`. Only
  meaningful for `i >= 1` and `j < num_y - 1`.
  """
  v_left = array_utils.shift(v, -1, axis=0)
  return 0.25 * (v_left + v
                 + array_utils.shift(v_left, +1, axis=1)
                 + array_utils.shift(v, +1, axis=1))


def cell_centered_velocity(u: Array, v: Array) -> Tuple[jax.Array, jax.Array]:
  """Averages each component over the two faces enclosing a cell center."""
  return (0.5 * (u + array_utils.shift(u, +1, axis=0)),
          0.5 * (v + array_utils.shift(v, +1, axis=1)))
