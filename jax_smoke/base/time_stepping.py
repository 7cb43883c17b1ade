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
Functions for advancing the fluid state by one tick.

A tick is a fixed sequence of stages, each a pure `FluidState -> FluidState`
function:

1.  gravity (`forcings.integrate_gravity`),
2.  clear the pressure accumulator,
3.  pressure projection (`pressure.projection_and_update_pressure`),
4.  border extrapolation (`boundaries.extrapolate`),
5.  velocity advection, then dye advection (`advection`),
6.  dye decay (`decay_density`).

The order is load-bearing: advection must see a projected, divergence-free
velocity field, and the border must be refreshed before anything samples near
it.

The tunable constants are bundled in a configuration object
(`SimulationConfig`) and a factory (`fluid_step_fn`) turns it into a compiled
step function `step_fn(state, dt, gravity, num_iters) -> state`.
"""

import dataclasses
import logging
from typing import Any, Callable, Dict, Optional, Union

import jax
from jax import lax
import jax.numpy as jnp
from jax_smoke.base import advection
from jax_smoke.base import boundaries
from jax_smoke.base import forcings
from jax_smoke.base import grids
from jax_smoke.base import pressure

logger = logging.getLogger(__name__)

FluidState = grids.FluidState
Scalar = Union[float, jax.Array]
# A step function advances a state by one tick:
# step_fn(state, dt, gravity, num_iters) -> state.
StepFn = Callable[[FluidState, Scalar, Scalar, Union[int, jax.Array]], FluidState]

# Pressure solvers selectable by name from a `SimulationConfig`.
PRESSURE_SOLVERS: Dict[str, pressure.SolveFn] = {
    'gauss_seidel': pressure.solve_incompressibility,
    'red_black': pressure.solve_incompressibility_red_black,
}


@dataclasses.dataclass(frozen=True)
class SimulationConfig:
  """
  Tunable constants of the simulation.

  The config is frozen and hashable so it can be closed over by a compiled
  step function. Field metadata carries the ranges and labels a settings
  panel needs; see `field_info()`.
  """
  time_step: float = dataclasses.field(
      default=1.0 / 60.0,
      metadata={'min': 1e-4, 'max': 0.1, 'label': 'Time Step',
                'description': 'Default tick length in seconds'})
  gravity: float = dataclasses.field(
      default=-1.0,
      metadata={'min': -20.0, 'max': 20.0, 'label': 'Gravity',
                'description': 'Vertical acceleration applied to open v faces'})
  num_iterations: int = dataclasses.field(
      default=30,
      metadata={'min': 0, 'max': 200, 'label': 'Pressure Iterations',
                'description': 'Relaxation sweeps per tick'})
  density: float = dataclasses.field(
      default=1000.0,
      metadata={'min': 1.0, 'max': 10000.0, 'label': 'Fluid Density',
                'description': 'Scales velocity corrections into pressure'})
  over_relaxation: float = dataclasses.field(
      default=1.5,
      metadata={'min': 1.0, 'max': 1.99, 'label': 'Over-relaxation',
                'description': 'SOR factor; values in (0, 2) are stable'})
  boundary_damping: float = dataclasses.field(
      default=0.9,
      metadata={'min': 0.0, 'max': 1.0, 'label': 'Boundary Damping',
                'description': 'Factor applied to velocities on the border ring'})
  density_decay: float = dataclasses.field(
      default=0.998,
      metadata={'min': 0.0, 'max': 1.0, 'label': 'Dye Decay',
                'description': 'Per-tick multiplier of the dye field'})
  obstacle_radius: float = dataclasses.field(
      default=0.08,
      metadata={'min': 0.0, 'max': 1.0, 'label': 'Obstacle Radius',
                'description': 'Radius of the centered circular obstacle'})
  pressure_solver: str = dataclasses.field(
      default='gauss_seidel',
      metadata={'label': 'Pressure Solver',
                'description': 'Sweep order: gauss_seidel or red_black'})

  def __post_init__(self):
    """Raises `ValueError` for out-of-range settings."""
    if not self.time_step > 0:
      raise ValueError(f'time_step must be > 0: got {self.time_step}')
    if self.num_iterations < 0:
      raise ValueError(
          f'num_iterations must be >= 0: got {self.num_iterations}')
    if not self.density > 0:
      raise ValueError(f'density must be > 0: got {self.density}')
    if not 0.0 < self.over_relaxation < 2.0:
      raise ValueError(
          f'over_relaxation must be in (0, 2): got {self.over_relaxation}')
    if not 0.0 <= self.boundary_damping <= 1.0:
      raise ValueError(
          f'boundary_damping must be in [0, 1]: got {self.boundary_damping}')
    if not 0.0 <= self.density_decay <= 1.0:
      raise ValueError(
          f'density_decay must be in [0, 1]: got {self.density_decay}')
    if self.obstacle_radius < 0:
      raise ValueError(
          f'obstacle_radius must be >= 0: got {self.obstacle_radius}')
    if self.pressure_solver not in PRESSURE_SOLVERS:
      raise ValueError(
          f'unknown pressure_solver {self.pressure_solver!r}; expected one of '
          f'{sorted(PRESSURE_SOLVERS)}')

  @property
  def solve(self) -> pressure.SolveFn:
    return PRESSURE_SOLVERS[self.pressure_solver]

  @classmethod
  def field_info(cls) -> Dict[str, Dict[str, Any]]:
    """
    Returns type, default and metadata of every field, keyed by name.

    Example:
      >>> SimulationConfig.field_info()['gravity']['label']
      'Gravity'
    """
    info = {}
    for f in dataclasses.fields(cls):
      info[f.name] = {'type': f.type, 'default': f.default, **f.metadata}
    return info


def decay_density(state: FluidState, factor: Scalar = 0.998) -> FluidState:
  """Multiplies every dye cell by `factor`."""
  return state.replace(m=(state.m * factor).astype(state.m.dtype))


def simulate(
    state: FluidState,
    dt: Scalar,
    gravity: Scalar,
    num_iters: Union[int, jax.Array],
    config: SimulationConfig = SimulationConfig(),
) -> FluidState:
  """
  Advances `state` by one tick.

  Args:
    state: The state at the start of the tick, with any pending injections
      already applied.
    dt: Time step; must be positive.
    gravity: Vertical acceleration.
    num_iters: Pressure relaxation sweeps; `0` skips the projection.
    config: Remaining constants (density, over-relaxation, damping, decay
      and the pressure solver).

  Returns:
    The state at the end of the tick.
  """
  state = forcings.integrate_gravity(state, dt, gravity)
  state = state.replace(p=jnp.zeros_like(state.p))
  state = pressure.projection_and_update_pressure(
      state, dt, num_iters,
      density=config.density,
      over_relaxation=config.over_relaxation,
      solve=config.solve)
  state = boundaries.extrapolate(state, config.boundary_damping)
  state = advection.advect_velocity(state, dt)
  state = advection.advect_smoke(state, dt)
  return decay_density(state, config.density_decay)


def fluid_step_fn(config: Optional[SimulationConfig] = None) -> StepFn:
  """
  Creates a compiled step function for a configuration.

  Args:
    config: Simulation constants; defaults to `SimulationConfig()`.

  Returns:
    A jitted `step_fn(state, dt, gravity, num_iters)`. `dt`, `gravity` and
    `num_iters` are traced, so changing them does not recompile.
  """
  config = config or SimulationConfig()
  logger.debug('building step function with %s', config)

  def step_fn(state, dt, gravity, num_iters):
    return simulate(state, dt, gravity, num_iters, config)

  # `named_call` labels the tick in profiler traces.
  return jax.jit(jax.named_call(step_fn, name='fluid_step'))


def repeated(step_fn: StepFn, steps: int) -> StepFn:
  """
  Returns a function that applies `step_fn` `steps` times.

  Useful for headless runs where nothing is injected between ticks; the loop
  is a single `lax.fori_loop`, so it compiles once regardless of `steps`.
  """
  def run(state, dt, gravity, num_iters):
    def body(_, s):
      return step_fn(s, dt, gravity, num_iters)
    return lax.fori_loop(0, steps, body, state)

  return run
