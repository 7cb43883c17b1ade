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
Stateful front end for interactive use.

`FluidSimulator` owns one `FluidState`, a compiled step function and a queue
of pending injections. Callers (a render loop, an input handler) talk to it
with plain Python numbers and read back flat arrays indexed by
`i * height() + j`.

Example:
  >>> sim = FluidSimulator(200, 200, 1.0 / 200)
  >>> sim.paint(100, 100, velocity_x=1.0, velocity_y=0.0)
  >>> sim.simulate()
  >>> dye = sim.density()
"""

import logging
from typing import Optional

import jax
from jax_smoke.base import array_utils
from jax_smoke.base import grids
from jax_smoke.base import time_stepping
from jax_smoke.sources import brushes
from jax_smoke.sources import injection

logger = logging.getLogger(__name__)


class FluidSimulator:
  """
  A smoke simulation around a centered circular obstacle.

  Args:
    num_x: Interior cells along x. The stored grid has two more.
    num_y: Interior cells along y. The stored grid has two more.
    h: Cell spacing.
    config: Simulation constants; defaults to `SimulationConfig()`.
  """

  def __init__(
      self,
      num_x: int,
      num_y: int,
      h: float,
      config: Optional[time_stepping.SimulationConfig] = None,
  ):
    self._config = config or time_stepping.SimulationConfig()
    self._grid = grids.Grid(num_x, num_y, h)
    self._step_fn = time_stepping.fluid_step_fn(self._config)
    self._queue = injection.InjectionQueue()
    self._state = self._initial_state()
    logger.info('created %dx%d fluid simulator (h=%g, %d solid cells)',
                self._grid.num_x, self._grid.num_y, self._grid.step,
                self._num_solid())

  def _initial_state(self) -> grids.FluidState:
    return grids.initial_state(self._grid, self._config.obstacle_radius)

  def _num_solid(self) -> int:
    return int((self._state.s == 0).sum())

  @property
  def config(self) -> time_stepping.SimulationConfig:
    return self._config

  @property
  def grid(self) -> grids.Grid:
    return self._grid

  @property
  def state(self) -> grids.FluidState:
    return self._state

  def simulate(
      self,
      dt: Optional[float] = None,
      gravity: Optional[float] = None,
      iterations: Optional[int] = None,
  ):
    """
    Applies pending injections and advances the simulation by one tick.

    Args:
      dt: Time step; defaults to `config.time_step`.
      gravity: Vertical acceleration; defaults to `config.gravity`.
      iterations: Pressure sweeps; defaults to `config.num_iterations`.

    Raises:
      ValueError: if `dt` is not positive or `iterations` is negative.
    """
    dt = self._config.time_step if dt is None else dt
    gravity = self._config.gravity if gravity is None else gravity
    iterations = (
        self._config.num_iterations if iterations is None else iterations)
    if not dt > 0:
      raise ValueError(f'time step must be > 0: got {dt}')
    if iterations < 0:
      raise ValueError(f'iterations must be >= 0: got {iterations}')

    logger.debug('tick dt=%g gravity=%g iterations=%d pending=%d',
                 dt, gravity, iterations, len(self._queue))
    state = self._queue.drain(self._state)
    self._state = self._step_fn(state, dt, gravity, iterations)

  def add_density(self, x: int, y: int, amount: float):
    """Queues `amount` of dye for cell `(x, y)`."""
    self._queue.put(injection.DensityInjection(x, y, amount))

  def add_velocity(self, x: int, y: int, dx: float, dy: float):
    """Queues a velocity impulse for the faces of cell `(x, y)`."""
    self._queue.put(injection.VelocityInjection(x, y, dx, dy))

  def paint(
      self,
      x: int,
      y: int,
      velocity_x: float,
      velocity_y: float,
      radius: int = 8,
      strength: float = 8.0,
  ):
    """
    Queues one pointer stamp: a dye disc plus a 3x3 velocity push.

    Args:
      x: Padded cell index of the pointer along x.
      y: Padded cell index of the pointer along y.
      velocity_x: Velocity added along x on the cells around the pointer.
      velocity_y: Velocity added along y on the cells around the pointer.
      radius: Radius of the dye disc, in cells.
      strength: Dye added at the center of the disc.
    """
    self._queue.extend(brushes.density_brush(x, y, radius, strength))
    self._queue.extend(brushes.velocity_brush(x, y, velocity_x, velocity_y))

  def flush(self):
    """Applies pending injections without advancing time."""
    self._state = self._queue.drain(self._state)

  def reset(self):
    """Drops pending injections and restores the initial state."""
    self._queue.clear()
    self._state = self._initial_state()
    logger.info('reset fluid simulator')

  def density(self) -> jax.Array:
    return array_utils.ravel_field(self._state.m)

  def pressure(self) -> jax.Array:
    return array_utils.ravel_field(self._state.p)

  def solid_mask(self) -> jax.Array:
    """The open mask, `0` on solid cells and `1` elsewhere."""
    return array_utils.ravel_field(self._state.s)

  def width(self) -> int:
    """Padded number of cells along x."""
    return self._grid.num_x

  def height(self) -> int:
    """Padded number of cells along y."""
    return self._grid.num_y
