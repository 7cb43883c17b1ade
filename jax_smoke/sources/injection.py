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
External sources of dye and momentum.

Injections are point additions at a single cell, addressed by padded cell
indices `(x, y)`. Calls outside the padded grid are ignored; the obstacle mask
is not consulted, so dye or velocity added inside a solid cell is simply
stored there.

User input arrives between ticks. To keep a tick working on one consistent
snapshot, pending injections are recorded as small immutable records and
collected in an `InjectionQueue`, which is drained into the state right
before the next tick starts.
"""

import collections
import dataclasses
from typing import Iterable, Union

import numpy as np

from jax_smoke.base import grids

FluidState = grids.FluidState


def add_density(state: FluidState, x: int, y: int, amount: float) -> FluidState:
  """
  Adds `amount` of dye to cell `(x, y)`.

  Args:
    state: The current fluid state.
    x: Padded cell index along x.
    y: Padded cell index along y.
    amount: Dye to add; may be negative.

  Returns:
    A new `FluidState`, or `state` itself when `(x, y)` is out of range.
  """
  if not state.grid.contains(x, y):
    return state
  return state.replace(m=state.m.at[x, y].add(amount))


def add_velocity(
    state: FluidState, x: int, y: int, dx: float, dy: float) -> FluidState:
  """
  Adds `(dx, dy)` to the `u` and `v` samples stored at cell `(x, y)`.

  The two samples live on the left and bottom faces of the cell. Out of range
  calls return `state` unchanged.
  """
  if not state.grid.contains(x, y):
    return state
  return state.replace(u=state.u.at[x, y].add(dx),
                       v=state.v.at[x, y].add(dy))


@dataclasses.dataclass(frozen=True)
class DensityInjection:
  """A pending `add_density` call."""
  x: int
  y: int
  amount: float

  def apply(self, state: FluidState) -> FluidState:
    return add_density(state, self.x, self.y, self.amount)


@dataclasses.dataclass(frozen=True)
class VelocityInjection:
  """A pending `add_velocity` call."""
  x: int
  y: int
  dx: float
  dy: float

  def apply(self, state: FluidState) -> FluidState:
    return add_velocity(state, self.x, self.y, self.dx, self.dy)


Injection = Union[DensityInjection, VelocityInjection]


def apply_injections(
    state: FluidState, injections: Iterable[Injection]) -> FluidState:
  """
  Applies a batch of injections with one scatter-add per field.

  Equivalent to calling `apply` on each injection in turn: out of range
  injections are dropped and repeated cells accumulate.

  Args:
    state: The current fluid state.
    injections: The injections to apply.

  Returns:
    A new `FluidState`, or `state` itself when nothing lands on the grid.
  """
  dye = []
  push = []
  for record in injections:
    if not state.grid.contains(record.x, record.y):
      continue
    if isinstance(record, DensityInjection):
      dye.append((record.x, record.y, record.amount))
    else:
      push.append((record.x, record.y, record.dx, record.dy))

  changes = {}
  if dye:
    xs, ys, amounts = (np.asarray(column) for column in zip(*dye))
    changes['m'] = state.m.at[xs, ys].add(amounts.astype(state.m.dtype))
  if push:
    xs, ys, dxs, dys = (np.asarray(column) for column in zip(*push))
    changes['u'] = state.u.at[xs, ys].add(dxs.astype(state.u.dtype))
    changes['v'] = state.v.at[xs, ys].add(dys.astype(state.v.dtype))
  return state.replace(**changes) if changes else state


class InjectionQueue:
  """
  First-in first-out buffer of pending injections.

  Backed by `collections.deque`, whose `append` and `popleft` are atomic, so
  an input thread may `put` while the simulation thread drains.
  """

  def __init__(self, injections: Iterable[Injection] = ()):
    self._pending = collections.deque(injections)

  def __len__(self) -> int:
    return len(self._pending)

  def put(self, injection: Injection):
    self._pending.append(injection)

  def extend(self, injections: Iterable[Injection]):
    for injection in injections:
      self.put(injection)

  def clear(self):
    self._pending.clear()

  def drain(self, state: FluidState) -> FluidState:
    """
    Applies and removes every pending injection as one batch.

    Injections queued while the batch is being collected join it; later ones
    wait for the next drain.
    """
    batch = []
    while True:
      try:
        batch.append(self._pending.popleft())
      except IndexError:
        break
    return apply_injections(state, batch)
