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
Semi-Lagrangian advection of the velocity and dye fields.

For every destination sample `x` the advector estimates the local velocity,
traces back to the departure point `x_d = x - dt * velocity` and assigns the
value of the field interpolated at `x_d`. The method is unconditionally stable
with respect to the time step, at the cost of some numerical diffusion.

Every destination value is computed from the input state only. Because JAX
arrays are immutable, the whole field is evaluated from the previous tick's
snapshot and swapped in at once; no value written during the pass is read
back by the same pass.

Openness guards mirror the force integrator: a face is only advected when
both cells it separates are open, so nothing is transported across solid
geometry.
"""

from typing import Union

import jax
import jax.numpy as jnp
from jax_smoke.base import array_utils
from jax_smoke.base import grids
from jax_smoke.base import interpolation

# --- Type Aliases ---
Field = grids.Field
FluidState = grids.FluidState
Scalar = Union[float, jax.Array]


def advectable_u_faces(state: FluidState) -> jax.Array:
  """`u` faces with `i >= 1`, `1 <= j < num_y - 1` between two open cells."""
  _, ny = state.shape
  i, j = state.grid.indices()
  left = array_utils.shift(state.s, -1, axis=0)
  return ((i >= 1) & (j >= 1) & (j < ny - 1)
          & (state.s != 0) & (left != 0))


def advectable_v_faces(state: FluidState) -> jax.Array:
  """`v` faces with `1 <= i < num_x - 1`, `j >= 1` between two open cells."""
  nx, _ = state.shape
  i, j = state.grid.indices()
  below = array_utils.shift(state.s, -1, axis=1)
  return ((i >= 1) & (i < nx - 1) & (j >= 1)
          & (state.s != 0) & (below != 0))


def advect_velocity(state: FluidState, dt: Scalar) -> FluidState:
  """
  Transports both velocity components along the velocity field.

  At a `u` face the velocity estimate is `(u, average_v)`; at a `v` face it is
  `(average_u, v)`. Faces outside the advectable masks keep their values.

  Args:
    state: The state at the start of the pass.
    dt: Time step.

  Returns:
    A new `FluidState` with advected `u` and `v`.
  """
  # u samples sit at (i*h, (j + 0.5)*h).
  x, y = state.grid.mesh(Field.U.offset)
  x = x - dt * state.u
  y = y - dt * interpolation.average_v(state.v)
  u = jnp.where(advectable_u_faces(state),
                interpolation.sample_field(state, Field.U, x, y), state.u)

  # v samples sit at ((i + 0.5)*h, j*h).
  x, y = state.grid.mesh(Field.V.offset)
  x = x - dt * interpolation.average_u(state.u)
  y = y - dt * state.v
  v = jnp.where(advectable_v_faces(state),
                interpolation.sample_field(state, Field.V, x, y), state.v)

  return state.replace(u=u.astype(state.u.dtype), v=v.astype(state.v.dtype))


def advect_smoke(state: FluidState, dt: Scalar) -> FluidState:
  """
  Transports the dye along the (already advected) velocity field.

  Every open interior cell traces its center back by the cell-centered
  velocity. Solid cells and the border ring keep their dye.
  """
  x, y = state.grid.mesh(Field.M.offset)
  u_center, v_center = interpolation.cell_centered_velocity(state.u, state.v)
  x = x - dt * u_center
  y = y - dt * v_center
  mask = grids.interior_mask(state.grid) & (state.s != 0)
  m = jnp.where(mask, interpolation.sample_field(state, Field.M, x, y), state.m)
  return state.replace(m=m.astype(state.m.dtype))
