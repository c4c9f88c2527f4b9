"""
Tests for execution mode detection.
"""

import io

import pytest

from headless_swarm.environment import EnvironmentProbe, detect_mode, is_truthy
from headless_swarm.errors import ConfigurationError, NonInteractiveError
from headless_swarm.models import ExecutionMode


class FakeStream(io.StringIO):
    def __init__(self, tty: bool):
        super().__init__()
        self._tty = tty

    def isatty(self):
        return self._tty


def probe(env=None, tty=True):
    return EnvironmentProbe(environ=env or {}, stdout=FakeStream(tty))


class TestIsTruthy:
    @pytest.mark.parametrize("value", ["1", "true", "TRUE", " yes ", "on"])
    def test_truthy_values(self, value):
        assert is_truthy(value)

    @pytest.mark.parametrize("value", [None, "", "0", "false", "no", "off", "maybe"])
    def test_falsy_values(self, value):
        assert not is_truthy(value)


class TestDetect:
    """Tests for EnvironmentProbe.detect precedence."""

    def test_tty_without_markers_is_interactive(self):
        assert probe(tty=True).detect() is ExecutionMode.INTERACTIVE

    def test_no_tty_is_headless(self):
        assert probe(tty=False).detect() is ExecutionMode.HEADLESS

    @pytest.mark.parametrize(
        "env",
        [
            {"CI": "true"},
            {"CONTINUOUS_INTEGRATION": "1"},
            {"GITHUB_ACTIONS": "true"},
            {"DOCKER_CONTAINER": "true"},
            {"KUBERNETES_SERVICE_HOST": "10.0.0.1"},
            {"ECS_CONTAINER_METADATA_URI": "http://169.254.170.2/v3"},
            {"AWS_BATCH_JOB_ID": "job-1"},
            {"SWARM_ENV": "production"},
        ],
    )
    def test_markers_force_headless_even_with_tty(self, env):
        """CI and container markers win over an attached terminal."""
        assert probe(env, tty=True).detect() is ExecutionMode.HEADLESS

    def test_false_flag_marker_is_ignored(self):
        assert probe({"CI": "false"}, tty=True).detect() is ExecutionMode.INTERACTIVE

    def test_headless_env_override(self):
        assert probe({"SWARM_HEADLESS": "true"}, tty=True).detect() is ExecutionMode.HEADLESS

    @pytest.mark.parametrize("override", ["headless", True, ExecutionMode.HEADLESS])
    def test_headless_override(self, override):
        assert probe(tty=True).detect(override) is ExecutionMode.HEADLESS

    def test_forced_interactive_with_tty_ignores_markers(self):
        assert probe({"CI": "true"}, tty=True).detect("interactive") is ExecutionMode.INTERACTIVE

    def test_forced_interactive_without_tty_raises(self):
        """Interactive mode cannot be honored without a terminal."""
        with pytest.raises(NonInteractiveError) as exc_info:
            probe(tty=False).detect("interactive")

        assert isinstance(exc_info.value, ConfigurationError)
        assert "--headless" in str(exc_info.value)

    def test_headless_env_beats_forced_interactive(self):
        env = {"SWARM_HEADLESS": "1"}
        assert probe(env, tty=False).detect("interactive") is ExecutionMode.HEADLESS

    @pytest.mark.parametrize("override", [None, "auto", "", False])
    def test_auto_overrides_fall_through(self, override):
        assert probe(tty=False).detect(override) is ExecutionMode.HEADLESS

    def test_invalid_override_raises(self):
        with pytest.raises(ValueError, match="Invalid execution mode"):
            probe().detect("sometimes")


class TestProbeInputs:
    def test_markers_lists_present_markers(self):
        env = {"CI": "1", "JENKINS_URL": "http://ci", "GITLAB_CI": "no"}

        assert probe(env).markers() == ["CI", "JENKINS_URL"]

    def test_closed_stream_is_not_a_tty(self):
        stream = io.StringIO()
        stream.close()

        assert EnvironmentProbe(environ={}, stdout=stream).is_tty() is False

    def test_detect_mode_uses_process_environment(self, clean_env):
        clean_env.setenv("SWARM_HEADLESS", "true")

        assert detect_mode() is ExecutionMode.HEADLESS
