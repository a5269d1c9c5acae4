"""
Unit tests for the steering controller and flight physics.

Hover wobble is disabled in most tests so results are deterministic.
"""

import pytest
import numpy as np
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from flight.input_state import Command, InputState, NO_INPUT
from flight.steering_controller import (
    KinematicState,
    PhysicsParameters,
    SteeringController,
    normalize_heading,
    wrap_angle,
)
from navigation.navigation_grid import ObstacleFootprint


@pytest.fixture
def params():
    return PhysicsParameters(hover_wobble=0.0)


@pytest.fixture
def controller(params):
    return SteeringController(params, rng=np.random.default_rng(0))


@pytest.fixture
def state():
    return KinematicState(position=(0.0, 10.0, 0.0))


class TestAngles:
    """Test angle helpers."""

    def test_wrap_angle(self):
        """Test wrapping into (-180, 180]."""
        assert wrap_angle(190.0) == pytest.approx(-170.0)
        assert wrap_angle(-190.0) == pytest.approx(170.0)
        assert wrap_angle(180.0) == 180.0
        assert wrap_angle(-180.0) == 180.0
        assert wrap_angle(45.0) == pytest.approx(45.0)

    def test_normalize_heading(self):
        """Test normalizing into [0, 360)."""
        assert normalize_heading(-10.0) == pytest.approx(350.0)
        assert normalize_heading(370.0) == pytest.approx(10.0)
        assert normalize_heading(360.0) == 0.0


class TestPhysicsParameters:
    """Test physics parameter defaults and config loading."""

    def test_defaults(self):
        """Test default constants."""
        p = PhysicsParameters()

        assert p.gravity == 9.8
        assert p.max_tilt == 30.0
        assert p.arrival_threshold == 1.5
        assert p.reset_position == (0.0, 10.0, 0.0)
        assert p.cruise_speed == pytest.approx(0.75)

    def test_from_config(self):
        """Test overriding a subset from a dict and ignoring unknown keys."""
        p = PhysicsParameters.from_config({
            'gravity': 5.0,
            'reset_position': [1, 2, 3],
            'unknown_key': 99,
        })

        assert p.gravity == 5.0
        assert p.reset_position == (1.0, 2.0, 3.0)
        assert p.lift_power == 6.0

    def test_from_empty_config(self):
        """Test that an empty config gives the defaults."""
        assert PhysicsParameters.from_config(None) == PhysicsParameters()


class TestKinematicState:
    """Test KinematicState dataclass."""

    def test_arrays_converted(self):
        """Test that sequences become float arrays."""
        state = KinematicState(position=[1, 2, 3], velocity=[3, 0, 4])

        assert isinstance(state.position, np.ndarray)
        assert state.position.dtype == float
        assert state.altitude == 2.0
        assert state.speed == pytest.approx(5.0)

    def test_tilt_magnitude(self):
        state = KinematicState(position=(0, 0, 0), tilt=(3.0, 4.0))
        assert state.tilt_magnitude == pytest.approx(5.0)


class TestArrival:
    """Test arrival checks."""

    def test_arrival_at_zero_distance(self, controller, state):
        """Test that a target at the current position counts as reached."""
        assert controller.has_reached(state, state.position.copy())

    def test_arrival_threshold(self, controller, state):
        """Test the arrival radius boundary."""
        assert controller.has_reached(state, (1.4, 10.0, 0.0))
        assert not controller.has_reached(state, (1.5, 10.0, 0.0))


class TestSteering:
    """Test autonomous steering toward a target."""

    def test_turns_toward_target(self, controller, state):
        """Test that heading turns toward the target at a limited rate."""
        controller.steer_towards(state, (20.0, 10.0, 0.0), dt=0.01)

        # Target at heading 90; turn clamped to 2 deg * dt * 50
        assert state.heading == pytest.approx(1.0)

    def test_turn_wraps_short_way(self, controller):
        """Test that the turn takes the shorter direction across 0/360."""
        state = KinematicState(position=(0.0, 10.0, 0.0), heading=10.0)

        controller.steer_towards(state, (-20.0, 10.0, 0.0), dt=0.01)

        # Target at heading 270; shortest turn is negative
        assert state.heading == pytest.approx(9.0)

    def test_horizontal_speed_capped(self, controller, params, state):
        """Test that cruising speed is capped far from the target."""
        controller.steer_towards(state, (0.0, 10.0, 100.0), dt=0.016)

        assert state.velocity[2] == pytest.approx(params.cruise_speed)
        assert state.velocity[0] == pytest.approx(0.0)

    def test_slows_near_target(self, controller, params, state):
        """Test that speed scales down inside twice the arrival radius."""
        controller.steer_towards(state, (0.0, 10.0, 1.5), dt=0.016)

        assert state.velocity[2] == pytest.approx(params.cruise_speed * 0.5)

    def test_creeps_inside_slowdown_radius(self, controller, params, state):
        """Test creep speed close to the target."""
        controller.steer_towards(state, (0.0, 10.0, 0.5), dt=0.016)

        assert state.velocity[2] == pytest.approx(params.cruise_speed * params.creep_fraction)

    def test_damps_on_target(self, controller, params, state):
        """Test damping when on top of the target."""
        state.velocity[:] = (1.0, 0.0, 1.0)
        controller.steer_towards(state, (0.0, 10.0, 0.05), dt=0.016)

        assert state.velocity[0] == pytest.approx(params.horizontal_damping)
        assert state.heading == 0.0

    def test_climbs_toward_higher_target(self, controller, state):
        """Test vertical velocity proportional to height error."""
        controller.steer_towards(state, (0.0, 12.0, 0.0), dt=0.1)
        assert state.velocity[1] == pytest.approx(2.0 * 5.0 * 0.1)

    def test_vertical_speed_clamped(self, controller, params, state):
        """Test vertical speed limited by lift power."""
        controller.steer_towards(state, (0.0, 200.0, 0.0), dt=0.1)
        assert state.velocity[1] == pytest.approx(params.lift_power)

    def test_vertical_deadband_damps(self, controller, params, state):
        """Test vertical damping within the deadband."""
        state.velocity[1] = 1.0
        controller.steer_towards(state, (0.0, 10.1, 5.0), dt=0.1)
        assert state.velocity[1] == pytest.approx(params.vertical_damping)

    def test_tilt_follows_velocity(self, controller, params, state):
        """Test pitch from forward motion at heading 0."""
        controller.steer_towards(state, (0.0, 10.0, 100.0), dt=0.016)

        assert state.tilt[0] == pytest.approx(params.cruise_speed * params.tilt_gain)
        assert state.tilt[1] == pytest.approx(0.0)

    def test_tilt_uses_heading_frame(self, controller, params):
        """Test that moving straight ahead pitches forward at any heading."""
        state = KinematicState(position=(0.0, 10.0, 0.0), heading=90.0)

        controller.steer_towards(state, (100.0, 10.0, 0.0), dt=0.016)

        assert state.tilt[0] == pytest.approx(params.cruise_speed * params.tilt_gain)
        assert state.tilt[1] == pytest.approx(0.0, abs=1e-9)

    def test_update_moves_toward_target(self, controller, state):
        """Test that repeated updates close the distance."""
        target = (0.0, 10.0, 5.0)
        start_distance = np.linalg.norm(np.array(target) - state.position)

        for _ in range(60):
            controller.update(state, 1 / 60, target=target)

        assert np.linalg.norm(np.array(target) - state.position) < start_distance


class TestManualInput:
    """Test manual flight commands."""

    def test_hover_holds_altitude(self, controller, state):
        """Test that hover lift cancels gravity without wobble."""
        controller.update(state, 0.1, NO_INPUT)

        assert state.velocity[1] == pytest.approx(0.0)
        assert state.position[1] == pytest.approx(10.0)

    def test_ascend(self, controller, params, state):
        """Test that ascend produces upward velocity."""
        controller.update(state, 0.1, InputState.of(Command.ASCEND))

        expected = (params.lift_power * params.manual_lift_multiplier - params.gravity) * 0.1
        assert state.velocity[1] == pytest.approx(expected * params.vertical_drag_factor)
        assert state.position[1] > 10.0

    def test_descend(self, controller, state):
        """Test that descend produces downward velocity."""
        controller.update(state, 0.1, InputState.of(Command.DESCEND))
        assert state.velocity[1] < 0.0

    def test_yaw(self, controller, state):
        """Test yaw commands and heading wrap."""
        controller.update(state, 0.1, InputState.of(Command.YAW_RIGHT))
        assert state.heading == pytest.approx(359.0)

        controller.update(state, 0.1, InputState.of(Command.YAW_LEFT))
        controller.update(state, 0.1, InputState.of(Command.YAW_LEFT))
        assert state.heading == pytest.approx(1.0)

    def test_forward_at_heading_zero(self, controller, params, state):
        """Test that forward accelerates along +Z and ramps pitch."""
        controller.update(state, 0.1, InputState.of(Command.FORWARD))

        assert state.velocity[2] == pytest.approx(params.movement_speed * 0.1 * params.drag_factor)
        assert state.velocity[0] == pytest.approx(0.0)
        assert state.tilt[0] == pytest.approx(params.tilt_step)

    def test_forward_at_heading_ninety(self, controller):
        """Test that forward follows the heading."""
        state = KinematicState(position=(0.0, 10.0, 0.0), heading=90.0)

        controller.update(state, 0.1, InputState.of(Command.FORWARD))

        assert state.velocity[0] > 0.0
        assert state.velocity[2] == pytest.approx(0.0, abs=1e-9)

    def test_strafe_left_and_right(self, controller, state):
        """Test lateral commands and roll direction."""
        controller.update(state, 0.1, InputState.of(Command.LEFT))
        assert state.velocity[0] > 0.0
        assert state.tilt[1] == pytest.approx(-1.0)

        other = KinematicState(position=(0.0, 10.0, 0.0))
        controller.update(other, 0.1, InputState.of(Command.RIGHT))
        assert other.velocity[0] < 0.0
        assert other.tilt[1] == pytest.approx(1.0)

    def test_tilt_clamped(self, controller, params, state):
        """Test that held direction never exceeds max tilt."""
        for _ in range(100):
            controller.update(state, 0.01, InputState.of(Command.FORWARD))
        assert state.tilt[0] == pytest.approx(params.max_tilt)

    def test_tilt_recovers(self, controller, params, state):
        """Test that tilt decays once released."""
        state.tilt[:] = (10.0, -10.0)
        controller.update(state, 0.1, NO_INPUT)

        assert state.tilt[0] == pytest.approx(10.0 * params.tilt_recovery)
        assert state.tilt[1] == pytest.approx(-10.0 * params.tilt_recovery)

    def test_hover_wobble_seeded(self):
        """Test that a seeded random source makes hover reproducible."""
        a = KinematicState(position=(0.0, 10.0, 0.0))
        b = KinematicState(position=(0.0, 10.0, 0.0))
        SteeringController(rng=np.random.default_rng(7)).update(a, 0.1, sim_time=0.5)
        SteeringController(rng=np.random.default_rng(7)).update(b, 0.1, sim_time=0.5)

        np.testing.assert_array_equal(a.position, b.position)
        assert a.velocity[1] != 0.0


class TestGroundAndDrag:
    """Test drag and ground clamping."""

    def test_drag_applied(self, controller, params, state):
        """Test horizontal drag each tick."""
        state.velocity[:] = (2.0, 0.0, 0.0)
        controller.update(state, 0.1, NO_INPUT)
        assert state.velocity[0] == pytest.approx(2.0 * params.drag_factor)

    def test_ground_clamp(self, controller, params):
        """Test that altitude never drops below the minimum."""
        state = KinematicState(position=(0.0, 1.2, 0.0), velocity=(0.0, -10.0, 0.0))

        controller.update(state, 0.1, InputState.of(Command.DESCEND))

        assert state.position[1] == pytest.approx(params.min_altitude)
        assert state.velocity[1] == 0.0


class TestCrash:
    """Test collision and crash behavior."""

    def test_collision_sets_crashed(self, controller, state):
        """Test that overlapping an obstacle crashes the agent."""
        state.velocity[:] = (3.0, 1.0, 2.0)
        obstacle = ObstacleFootprint(-1.0, 1.0, -1.0, 1.0, 20.0)

        crashed = controller.check_collision(state, [obstacle], (1.0, 0.25, 1.0))

        assert crashed is True
        assert state.crashed
        assert state.velocity[0] == 0.0
        assert state.velocity[2] == 0.0
        assert state.velocity[1] == 1.0

    def test_no_collision_above_obstacle(self, controller, state):
        """Test that flying above an obstacle top is safe."""
        obstacle = ObstacleFootprint(-1.0, 1.0, -1.0, 1.0, 5.0)
        assert controller.check_collision(state, [obstacle], (1.0, 0.25, 1.0)) is False
        assert not state.crashed

    def test_crashed_agent_only_falls(self, controller, params):
        """Test that a crashed agent ignores steering and input and falls."""
        state = KinematicState(position=(0.0, 50.0, 0.0), crashed=True, tilt=(5.0, 5.0))
        previous_vy = state.velocity[1]

        for inputs in (InputState.of(Command.ASCEND), NO_INPUT, InputState.of(Command.FORWARD)):
            controller.update(state, 0.1, inputs)
            assert state.velocity[1] < previous_vy
            assert state.velocity[1] == pytest.approx(previous_vy - params.gravity * 0.1)
            previous_vy = state.velocity[1]

        controller.update(state, 0.1, target=(0.0, 80.0, 10.0))
        assert state.velocity[1] < previous_vy
        assert state.velocity[0] == 0.0
        assert state.heading == 0.0
        np.testing.assert_array_equal(state.tilt, [0.0, 0.0])

    def test_crashed_lands_on_ground(self, controller, params):
        """Test that a falling agent stops at minimum altitude."""
        state = KinematicState(position=(0.0, 2.0, 0.0), crashed=True)

        for _ in range(50):
            controller.update(state, 0.1, NO_INPUT)

        assert state.position[1] == pytest.approx(params.min_altitude)
        assert state.crashed

    def test_already_crashed_not_reported_again(self, controller, state):
        """Test that a second collision check does not report a new crash."""
        obstacle = ObstacleFootprint(-1.0, 1.0, -1.0, 1.0, 20.0)
        controller.check_collision(state, [obstacle], (1.0, 0.25, 1.0))
        assert controller.check_collision(state, [obstacle], (1.0, 0.25, 1.0)) is False

    def test_reset_clears_crash(self, controller):
        """Test that reset restores the default pose."""
        state = KinematicState(position=(5.0, 2.0, 5.0), velocity=(1, 1, 1),
                               heading=45.0, tilt=(3.0, 3.0), crashed=True)

        controller.reset(state)

        np.testing.assert_array_equal(state.position, [0.0, 10.0, 0.0])
        np.testing.assert_array_equal(state.velocity, [0.0, 0.0, 0.0])
        assert state.heading == 0.0
        assert not state.crashed


class TestFormationFollow:
    """Test formation slot following."""

    def test_moves_toward_slot(self, controller, params, state):
        """Test velocity proportional to remaining distance."""
        controller.follow_formation(state, (1.0, 10.0, 0.0), 0.0, dt=0.01)

        assert state.velocity[0] == pytest.approx(params.formation_follow_speed)
        assert state.position[0] == pytest.approx(0.1)

    def test_converges(self, controller, state):
        """Test that following converges on the slot."""
        slot = np.array([4.0, 12.0, -3.0])
        for _ in range(200):
            controller.follow_formation(state, slot, 0.0, dt=1 / 60)

        np.testing.assert_allclose(state.position, slot, atol=0.1)

    def test_heading_eases(self, controller, params, state):
        """Test heading closes a fraction of the gap per tick."""
        controller.follow_formation(state, state.position.copy(), 90.0, dt=0.01)
        assert state.heading == pytest.approx(90.0 * params.formation_heading_gain)

    def test_heading_deadband(self, controller, state):
        """Test that small heading gaps are ignored."""
        controller.follow_formation(state, state.position.copy(), 0.3, dt=0.01)
        assert state.heading == 0.0

    def test_heading_eases_short_way(self, controller):
        """Test heading easing across 0/360."""
        state = KinematicState(position=(0.0, 10.0, 0.0), heading=350.0)
        controller.follow_formation(state, state.position.copy(), 10.0, dt=0.01)
        assert state.heading == pytest.approx(352.0)

    def test_tilt_decays(self, controller, params):
        state = KinematicState(position=(0.0, 10.0, 0.0), tilt=(10.0, 0.0))
        controller.follow_formation(state, state.position.copy(), 0.0, dt=0.01)
        assert state.tilt[0] == pytest.approx(10.0 * params.formation_tilt_decay)
