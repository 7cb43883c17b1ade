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
External body forces acting on the velocity field.

Gravity acts along y only, so only the vertical velocity `v` changes. A `v`
sample sits on the face between cell `(i, j)` and cell `(i, j - 1)`; it is
accelerated only when both cells are open, so no fluid is pushed into or out
of a solid obstacle.
"""

from typing import Union

import jax
import jax.numpy as jnp
from jax_smoke.base import array_utils
from jax_smoke.base import grids

FluidState = grids.FluidState


def open_v_faces(state: FluidState) -> jax.Array:
  """
  Mask of the `v` faces the force integrator may touch.

  Covers `1 <= i < num_x` and `1 <= j < num_y - 1`, restricted to faces whose
  two adjacent cells are both open.
  """
  _, ny = state.shape
  i, j = state.grid.indices()
  below = array_utils.shift(state.s, -1, axis=1)
  return ((i >= 1) & (j >= 1) & (j < ny - 1)
          & (state.s != 0) & (below != 0))


def integrate_gravity(
    state: FluidState,
    dt: Union[float, jax.Array],
    gravity: Union[float, jax.Array],
) -> FluidState:
  """
  Applies `v += gravity * dt` on every open interior `v` face.

  Args:
    state: The current fluid state.
    dt: Time step.
    gravity: Vertical acceleration; negative values pull towards `j = 0`.

  Returns:
    A new `FluidState` with the updated `v` field; `u` is untouched.
  """
  v = jnp.where(open_v_faces(state), state.v + gravity * dt, state.v)
  return state.replace(v=v.astype(state.v.dtype))
