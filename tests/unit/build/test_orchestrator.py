"""
Unit tests for BuildOrchestrator.

Tests the complete pipeline with the process runner mocked out:
- Capability and plan validation before any work
- Source acquisition and staging
- Binding fallback
- CMake invocation
- Link graph, version and manifest
"""

import json
from unittest.mock import Mock

import pytest

from whisperbuild.build import BuildOptions, BuildOrchestrator
from whisperbuild.build.cmake_executor import BuildError
from whisperbuild.command_runner import CommandResult
from whisperbuild.config import ConfigurationError, EnvironmentSnapshot
from whisperbuild.packages import AcquisitionError

LINUX = "x86_64-unknown-linux-gnu"


def _result(cmd, returncode=0, stdout="", stderr=""):
    return CommandResult(args=[str(arg) for arg in cmd], returncode=returncode, stdout=stdout, stderr=stderr)


# Test fixtures

@pytest.fixture
def project_dir(tmp_path):
    """Create a project with a vendored whisper.cpp checkout."""
    project = tmp_path / "project"
    vendor = project / "whisper.cpp"
    (vendor / "include").mkdir(parents=True)
    (vendor / "CMakeLists.txt").write_text(
        'cmake_minimum_required(VERSION 3.5)\nproject("whisper.cpp" VERSION 1.7.4)\n'
    )
    (vendor / "include" / "whisper.h").write_text("int whisper_lang_max_id(void);\n")
    return project


@pytest.fixture
def environment(tmp_path):
    """Environment with cmake configured and no C compiler on PATH."""
    empty_bin = tmp_path / "empty-bin"
    empty_bin.mkdir()
    return {"PATH": str(empty_bin), "CMAKE": "cmake"}


@pytest.fixture
def runner():
    """Runner whose commands all succeed."""
    mock_runner = Mock()
    mock_runner.run.side_effect = lambda cmd, **kwargs: _result(cmd)
    return mock_runner


def _orchestrator(env, runner):
    return BuildOrchestrator(environment=EnvironmentSnapshot(env), runner=runner)


class TestBuildOrchestrator:
    """Test cases for BuildOrchestrator."""

    def test_successful_build(self, project_dir, environment, runner):
        """Test a complete build with a local checkout."""
        result = _orchestrator(environment, runner).build(
            project_dir, BuildOptions(target=LINUX, jobs=2)
        )

        assert result.success, result.message
        assert result.version == "1.7.4"
        assert result.bindings.is_fallback
        assert result.plan.variant == "embedded"
        assert result.link_graph.names()[:4] == ["whisper", "ggml", "ggml-base", "ggml-cpu"]
        assert result.placed_artifacts == []

        commands = [call[0][0] for call in runner.run.call_args_list]
        assert [cmd[1] for cmd in commands] == ["-S", "--build", "--install"]

        out_dir = project_dir.resolve() / ".whisperbuild" / "out"
        assert commands[0][2] == str(out_dir / "whisper.cpp")
        assert (out_dir / "whisper.cpp" / "CMakeLists.txt").is_file()
        assert (out_dir / "bindings.h").is_file()

    def test_manifest(self, project_dir, environment, runner):
        """Test the build manifest contents."""
        result = _orchestrator(environment, runner).build(project_dir, BuildOptions(target=LINUX))

        manifest = json.loads(result.manifest_path.read_text())
        assert manifest["WHISPER_CPP_VERSION"] == "1.7.4"
        assert manifest["target"] == LINUX
        assert manifest["features"] == []
        assert manifest["bindings"]["origin"] == "fallback"
        assert manifest["plan"]["build_type"] == "Release"
        assert manifest["link"]["units"][0] == {"kind": "static", "name": "whisper"}

    def test_configuration_error_before_any_work(self, project_dir, environment, runner):
        """Test that invalid capabilities stop the build before any command runs."""
        result = _orchestrator(environment, runner).build(
            project_dir, BuildOptions(features=["openblas"], target=LINUX)
        )

        assert not result.success
        assert isinstance(result.error, ConfigurationError)
        assert "BLAS_INCLUDE_DIRS" in result.message
        runner.run.assert_not_called()
        assert not (project_dir / ".whisperbuild").exists()

    def test_plan_errors_raise_from_run(self, project_dir, environment, runner):
        """Test that run() lets errors propagate."""
        with pytest.raises(ConfigurationError, match="Unknown feature"):
            _orchestrator(environment, runner).run(
                project_dir, BuildOptions(features=["opencl"], target=LINUX)
            )

    def test_plan_only(self, environment, runner):
        """Test planning without building."""
        plan = _orchestrator(environment, runner).plan(BuildOptions(features=["cuda"], target=LINUX))
        assert plan.get("GGML_CUDA") == "ON"
        runner.run.assert_not_called()

    def test_docs_only_skips_native_build(self, project_dir, environment, runner):
        """Test that documentation builds stop after the bindings."""
        environment["WHISPERBUILD_DOCS_ONLY"] = "1"

        result = _orchestrator(environment, runner).build(project_dir, BuildOptions(target=LINUX))

        assert result.success
        assert result.bindings is not None
        assert result.link_graph is None
        runner.run.assert_not_called()

    def test_cmake_failure(self, project_dir, environment):
        """Test that a cmake failure is reported in the result."""
        runner = Mock()
        runner.run.side_effect = lambda cmd, **kwargs: _result(cmd, 1, stderr="CMake Error at CMakeLists.txt:1")

        result = _orchestrator(environment, runner).build(project_dir, BuildOptions(target=LINUX))

        assert not result.success
        assert isinstance(result.error, BuildError)
        assert "cmake configure failed" in result.message

    def test_acquisition_failure(self, tmp_path, environment):
        """Test that missing sources with no git are reported in the result."""
        project = tmp_path / "empty-project"
        project.mkdir()
        runner = Mock()
        runner.run.side_effect = FileNotFoundError(2, "No such file or directory", "git")

        result = _orchestrator(environment, runner).build(project, BuildOptions(target=LINUX))

        assert not result.success
        assert isinstance(result.error, AcquisitionError)
        assert "git" in result.message

    def test_clean_rebuild_restages(self, project_dir, environment, runner):
        """Test that clean removes the staged copy before building."""
        orchestrator = _orchestrator(environment, runner)
        orchestrator.build(project_dir, BuildOptions(target=LINUX))
        staged = project_dir / ".whisperbuild" / "out" / "whisper.cpp" / "stale.txt"
        staged.write_text("left over")

        result = orchestrator.build(project_dir, BuildOptions(target=LINUX, clean=True))

        assert result.success
        assert not staged.exists()
