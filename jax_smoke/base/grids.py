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
Core data structures for the staggered (MAC) grid and the fluid state on it.

The simulation lives on a uniform 2D grid of `num_x x num_y` interior cells
surrounded by one layer of border cells on every side. All per-cell quantities
share the same index space, but they represent physically offset samples:

- `u` (horizontal velocity) sits on the left face of each cell,
- `v` (vertical velocity) sits on the bottom face of each cell,
- `p` (pressure), `s` (open/solid mask) and `m` (dye) sit at the cell center.

The key classes are:

- `Grid`: static description of the padded shape and the cell spacing `h`.
- `Field`: closed selector over the three sampled fields (`U`, `V`, `M`),
  carrying the sub-cell offset used when interpolating each of them.
- `FluidState`: a JAX PyTree holding every field array plus its `Grid`. All
  solver stages are pure functions `FluidState -> FluidState`.

Fields are stored as 2D arrays of shape `grid.shape` in C order, so the flat
index of cell `(i, j)` is `i * grid.shape[1] + j`.
"""
from __future__ import annotations

import dataclasses
import enum
import numbers
import operator
from typing import Any, Tuple, Union

import jax
import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class
import numpy as np

# --- Type Aliases ---
Array = Union[np.ndarray, jax.Array]


@dataclasses.dataclass(init=False, frozen=True)
class Grid:
  """
  Describes the size and spacing of the computational grid.

  The grid is immutable (`frozen=True`) and hashable, so it can be used as
  static metadata of a JAX PyTree and as a `jit` cache key.

  Attributes:
    shape: The padded number of cells `(num_x + 2, num_y + 2)`, including the
      border ring on each side.
    step: The uniform cell size `h`, identical along both axes.
  """
  shape: Tuple[int, int]
  step: float

  def __init__(self, num_x: int, num_y: int, h: float):
    """
    Constructs a grid from its interior dimensions and cell size.

    Args:
      num_x: Number of interior cells along x (before border padding).
      num_y: Number of interior cells along y (before border padding).
      h: Cell spacing; must be strictly positive.
    """
    try:
      num_x = operator.index(num_x)
      num_y = operator.index(num_y)
    except TypeError as e:
      raise TypeError(
          f'grid dimensions must be integers: got {num_x!r}, {num_y!r}') from e
    if num_x <= 0 or num_y <= 0:
      raise ValueError(
          f'grid dimensions must be positive: got ({num_x}, {num_y})')
    if not isinstance(h, numbers.Real) or not h > 0:
      raise ValueError(f'cell spacing `h` must be > 0: got {h!r}')
    # Use object.__setattr__ because the dataclass is frozen.
    object.__setattr__(self, 'shape', (num_x + 2, num_y + 2))
    object.__setattr__(self, 'step', float(h))

  @property
  def num_x(self) -> int:
    """Padded number of cells along x."""
    return self.shape[0]

  @property
  def num_y(self) -> int:
    """Padded number of cells along y."""
    return self.shape[1]

  @property
  def num_cells(self) -> int:
    return self.shape[0] * self.shape[1]

  @property
  def domain(self) -> Tuple[Tuple[float, float], Tuple[float, float]]:
    """Physical extent `((0, num_x * h), (0, num_y * h))` of the padded grid."""
    return tuple((0.0, size * self.step) for size in self.shape)

  def flat_index(self, i: int, j: int) -> int:
    """Returns the index of cell `(i, j)` in a raveled field array."""
    return i * self.shape[1] + j

  def contains(self, i: int, j: int) -> bool:
    """Whether `(i, j)` addresses a cell of the padded grid."""
    return 0 <= i < self.shape[0] and 0 <= j < self.shape[1]

  def indices(self) -> Tuple[Array, Array]:
    """Integer index meshes `(I, J)` with `indexing='ij'`."""
    return tuple(jnp.meshgrid(
        jnp.arange(self.shape[0]), jnp.arange(self.shape[1]), indexing='ij'))

  def mesh(self, offset: Tuple[float, float] = (0.5, 0.5)) -> Tuple[Array, Array]:
    """
    Returns the physical coordinates of every sample for a given offset.

    The coordinate of sample `(i, j)` is `((i + offset[0]) * h,
    (j + offset[1]) * h)`; `(0.5, 0.5)` is the cell center.
    """
    if len(offset) != 2:
      raise ValueError(f'unexpected offset length: {len(offset)} vs 2')
    i, j = self.indices()
    return ((i + offset[0]) * self.step, (j + offset[1]) * self.step)


class Field(enum.Enum):
  """
  Selector for the fields that can be sampled at arbitrary coordinates.

  Each member names the `FluidState` attribute that backs it and knows where
  its samples sit inside a cell, in units of `h`.
  """
  U = 'u'
  V = 'v'
  M = 'm'

  @property
  def offset(self) -> Tuple[float, float]:
    return _FIELD_OFFSETS[self]


# `u` lives on vertical faces (x = i*h), `v` on horizontal faces (y = j*h) and
# the dye at cell centers.
_FIELD_OFFSETS = {
    Field.U: (0.0, 0.5),
    Field.V: (0.5, 0.0),
    Field.M: (0.5, 0.5),
}


@register_pytree_node_class
@dataclasses.dataclass
class FluidState:
  """
  The full state of the simulation at one point in time.

  Registered as a JAX PyTree: the field arrays are the traced children and
  the `Grid` is static auxiliary data, so a whole tick can be passed through
  `jax.jit` or `jax.lax` loops.

  Attributes:
    u: Horizontal velocity on the left face of each cell.
    v: Vertical velocity on the bottom face of each cell.
    p: Pressure, accumulated by the projector during a tick.
    s: Open mask; `0` marks a solid cell, any other value (canonically `1`)
      open fluid. Only `initial_state` writes it.
    m: Passive dye density.
    grid: The `Grid` every array above is defined on.
  """
  u: Array
  v: Array
  p: Array
  s: Array
  m: Array
  grid: Grid

  def tree_flatten(self):
    children = (self.u, self.v, self.p, self.s, self.m)
    aux_data = (self.grid,)
    return children, aux_data

  @classmethod
  def tree_unflatten(cls, aux_data, children):
    return cls(*children, *aux_data)

  @property
  def shape(self) -> Tuple[int, int]:
    return self.grid.shape

  def field(self, field: Field) -> Array:
    """Returns the array backing a sampled `Field`."""
    return getattr(self, field.value)

  def replace(self, **changes) -> FluidState:
    """Returns a copy of this state with the given arrays swapped in."""
    return dataclasses.replace(self, **changes)


def circular_obstacle(grid: Grid, radius: float) -> Array:
  """
  Returns a boolean mask of the cells covered by a centered disc.

  A cell is covered when its center lies strictly closer than `radius` to the
  center of the padded domain.
  """
  (_, x_upper), (_, y_upper) = grid.domain
  x, y = grid.mesh((0.5, 0.5))
  distance = jnp.sqrt((x - 0.5 * x_upper) ** 2 + (y - 0.5 * y_upper) ** 2)
  return distance < radius


def domain_ring_mask(grid: Grid) -> Array:
  """Returns a boolean mask of the outermost ring of cells."""
  i, j = grid.indices()
  nx, ny = grid.shape
  return (i == 0) | (i == nx - 1) | (j == 0) | (j == ny - 1)


def interior_mask(grid: Grid) -> Array:
  """Returns a boolean mask of every cell that is not on the border ring."""
  return ~domain_ring_mask(grid)


def initial_state(
    grid: Grid,
    obstacle_radius: float = 0.08,
    dtype: Any = jnp.float32,
) -> FluidState:
  """
  Builds the state a simulation starts from.

  Every field is zero and every cell is open, except for a solid disc of
  `obstacle_radius` centered in the domain, where `s` and `m` are zero. This
  is the only place solid cells are created.

  Args:
    grid: The grid to allocate the fields on.
    obstacle_radius: Radius of the embedded circular obstacle, in the same
      physical units as `grid.step`. A radius of zero leaves every cell open.
    dtype: Floating point type of the field arrays.

  Returns:
    A fresh `FluidState`.
  """
  zeros = jnp.zeros(grid.shape, dtype=dtype)
  solid = circular_obstacle(grid, obstacle_radius)
  s = jnp.where(solid, 0.0, 1.0).astype(dtype)
  m = jnp.where(solid, 0.0, zeros).astype(dtype)
  return FluidState(u=zeros, v=zeros, p=zeros, s=s, m=m, grid=grid)
