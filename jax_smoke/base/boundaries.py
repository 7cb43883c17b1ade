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
Boundary handling for the border ring of the grid.

The border cells are not part of the interior physics. Before advection reads
velocities near the domain edge, the border values are refreshed by a
zero-gradient ("open") extrapolation:

- `u` on the bottom and top rows (`j = 0` and `j = num_y - 1`) copies the row
  next to it,
- `v` on the left and right columns (`i = 0` and `i = num_x - 1`) copies the
  column next to it.

Afterwards every velocity sample on the outermost ring is multiplied by a
damping factor below one. The ring therefore acts as a weak energy sink that
suppresses reflections at the domain edge.
"""

from typing import Union

import jax
import jax.numpy as jnp
from jax_smoke.base import grids

FluidState = grids.FluidState


def extrapolate_velocity(state: FluidState) -> FluidState:
  """Copies interior velocities onto the border rows and columns."""
  u = state.u.at[:, 0].set(state.u[:, 1]).at[:, -1].set(state.u[:, -2])
  v = state.v.at[0, :].set(state.v[1, :]).at[-1, :].set(state.v[-2, :])
  return state.replace(u=u, v=v)


def damp_border(
    state: FluidState,
    damping: Union[float, jax.Array] = 0.9,
) -> FluidState:
  """Scales `u` and `v` by `damping` on the outermost ring of cells."""
  ring = grids.domain_ring_mask(state.grid)
  u = jnp.where(ring, state.u * damping, state.u).astype(state.u.dtype)
  v = jnp.where(ring, state.v * damping, state.v).astype(state.v.dtype)
  return state.replace(u=u, v=v)


def extrapolate(
    state: FluidState,
    damping: Union[float, jax.Array] = 0.9,
) -> FluidState:
  """
  Refreshes and damps the border velocities.

  Args:
    state: The current fluid state.
    damping: Factor applied to every velocity sample on the outermost ring
      after the copy.

  Returns:
    A new `FluidState`; only `u` and `v` on the border ring change.
  """
  return damp_border(extrapolate_velocity(state), damping)
