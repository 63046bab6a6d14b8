"""Tests for the wbuild command-line interface."""

import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from whisperbuild.build import BuildResult, LinkGraph
from whisperbuild.build.bindings import BindingSet
from whisperbuild.cli import main
from whisperbuild.cli_utils import OptionsLoader
from whisperbuild.config import ConfigurationError, ProjectSettings


@pytest.fixture(autouse=True)
def quiet_logging():
    """Keep main() from installing log handlers on the root logger."""
    with patch("whisperbuild.cli.setup_logging"):
        yield


def run_main(argv):
    """Run main() with argv and return the exit code."""
    with patch.object(sys, "argv", ["wbuild"] + argv):
        with pytest.raises(SystemExit) as exc_info:
            main()
    return exc_info.value.code


class TestCLIBuild:
    """Tests for the 'wbuild build' command."""

    @pytest.fixture
    def mock_orchestrator(self):
        """Replace BuildOrchestrator in the CLI module."""
        with patch("whisperbuild.cli.BuildOrchestrator") as mock_orch_class:
            mock_instance = MagicMock()
            mock_orch_class.return_value = mock_instance
            yield mock_instance

    @pytest.fixture
    def success_result(self, tmp_path):
        """Create successful build result."""
        graph = LinkGraph(target="x86_64-unknown-linux-gnu")
        graph.add_search_path(tmp_path / "out" / "lib")
        graph.add_unit("static", "whisper")
        return BuildResult(
            success=True,
            build_time=1.5,
            message="Build successful",
            bindings=BindingSet(content="", origin="generated", path=tmp_path / "out" / "bindings.h"),
            link_graph=graph,
            version="1.7.4",
            manifest_path=tmp_path / "out" / "whisperbuild-manifest.json",
        )

    def test_build_success(self, mock_orchestrator, success_result, tmp_path, capsys):
        """Test a successful build prints the link configuration."""
        mock_orchestrator.build.return_value = success_result

        assert run_main(["build", str(tmp_path), "-F", "cuda,openmp"]) == 0

        output = capsys.readouterr().out
        assert "whisper.cpp version: 1.7.4" in output
        assert "-lwhisper" in output
        assert "Build time: 1.50s" in output

        options = mock_orchestrator.build.call_args[0][1]
        assert options.features == ["cuda", "openmp"]
        assert options.profile == "release"

    def test_build_failure(self, mock_orchestrator, tmp_path, capsys):
        """Test that a failed build exits with status 1."""
        mock_orchestrator.build.return_value = BuildResult(
            success=False,
            build_time=0.1,
            message="The cuda feature requires CUDA_PATH on Windows targets",
            error=ConfigurationError("The cuda feature requires CUDA_PATH on Windows targets"),
        )

        assert run_main(["build", str(tmp_path)]) == 1
        assert "CUDA_PATH" in capsys.readouterr().out

    def test_build_uses_project_config(self, mock_orchestrator, success_result, tmp_path):
        """Test that whisperbuild.ini supplies defaults."""
        (tmp_path / "whisperbuild.ini").write_text(
            "[whisperbuild]\nfeatures = vulkan\nprofile = debug\n"
        )
        mock_orchestrator.build.return_value = success_result

        assert run_main(["build", str(tmp_path), "-j", "4"]) == 0

        options = mock_orchestrator.build.call_args[0][1]
        assert options.features == ["vulkan"]
        assert options.profile == "debug"
        assert options.jobs == 4

    def test_invalid_project_config(self, mock_orchestrator, tmp_path, capsys):
        """Test that a broken whisperbuild.ini is reported."""
        (tmp_path / "whisperbuild.ini").write_text("[other]\n")

        assert run_main(["build", str(tmp_path)]) == 1
        assert "Invalid whisperbuild.ini" in capsys.readouterr().out
        mock_orchestrator.build.assert_not_called()

    def test_keyboard_interrupt(self, mock_orchestrator, tmp_path):
        """Test that an interrupted build exits with status 130."""
        mock_orchestrator.build.side_effect = KeyboardInterrupt()
        assert run_main(["build", str(tmp_path)]) == 130

    def test_missing_project_dir(self, tmp_path):
        """Test that a missing project directory exits with status 2."""
        assert run_main(["build", str(tmp_path / "missing")]) == 2


class TestCLIOtherCommands:
    """Tests for plan, version and features."""

    def test_plan(self, tmp_path, capsys):
        """Test that plan prints the CMake arguments."""
        code = run_main(["plan", str(tmp_path), "--target", "x86_64-unknown-linux-gnu", "-F", "cuda"])

        assert code == 0
        output = capsys.readouterr().out
        assert "Variant: embedded" in output
        assert "-DGGML_CUDA=ON" in output

    def test_plan_invalid_feature(self, tmp_path, capsys):
        """Test that plan reports configuration errors."""
        code = run_main(["plan", str(tmp_path), "--target", "x86_64-unknown-linux-gnu", "-F", "opencl"])
        assert code == 1
        assert "Unknown feature" in capsys.readouterr().out

    def test_version(self, tmp_path, capsys):
        """Test reading the vendored whisper.cpp version."""
        vendor = tmp_path / "whisper.cpp"
        vendor.mkdir()
        (vendor / "CMakeLists.txt").write_text('project("whisper.cpp" VERSION 1.7.4)\n')

        with patch.dict("os.environ", {"WHISPERBUILD_OUT_DIR": str(tmp_path / "out")}):
            assert run_main(["version", str(tmp_path)]) == 0
        assert capsys.readouterr().out.strip() == "1.7.4"

    def test_version_not_found(self, tmp_path, capsys):
        """Test that a missing declaration exits with status 1."""
        with patch.dict("os.environ", {"WHISPERBUILD_OUT_DIR": str(tmp_path / "out")}):
            assert run_main(["version", str(tmp_path)]) == 1
        assert "Version not found" in capsys.readouterr().out

    def test_features(self, capsys):
        """Test listing the known features."""
        assert run_main(["features"]) == 0
        output = capsys.readouterr().out
        assert "cuda" in output
        assert "use-shared-ggml" in output

    def test_no_command(self, capsys):
        """Test that running without a command prints help."""
        assert run_main([]) == 1


class TestOptionsLoader:
    """Tests for OptionsLoader.merge."""

    def test_command_line_wins(self):
        """Test that explicit values override file settings."""
        settings = ProjectSettings(
            features=["metal"], profile="debug", vendor_dir=Path("/vendor"), archive_fallback=True
        )
        options = OptionsLoader.merge(settings, features=["cuda"], profile="release")

        assert options.features == ["cuda"]
        assert options.profile == "release"
        assert options.vendor_dir == Path("/vendor")
        assert options.archive_fallback is True

    def test_defaults(self):
        """Test defaults without a config file or options."""
        options = OptionsLoader.merge(ProjectSettings())
        assert options.features == []
        assert options.profile == "release"
        assert options.repository_url.endswith("whisper.cpp.git")
