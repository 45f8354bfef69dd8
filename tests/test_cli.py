from pathlib import Path
from click.testing import CliRunner
import sys
import textwrap

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from session_build import cli
from session_build.build import output_layout
from session_build.config_schema import BuildSettings


BUILD_COMMAND = """
echo "building $TARGET"
if [ "$TARGET" = "Fail" ]; then exit 3; fi
if [ "$DO_OUTPUT" = "true" ]; then echo "heap of $TARGET" > "$OUTPUT"; fi
"""


def _project(tmp_path: Path):
    root = tmp_path / "sessions"
    root.mkdir()
    (root / "A.thy").write_text("a")
    (root / "B.thy").write_text("b")
    (root / "ROOT.toml").write_text(textwrap.dedent("""
        [[session]]
        name = "A"
        path = "."
        groups = ["main"]
        [[session.sources]]
        files = ["A.thy"]

        [[session]]
        name = "B"
        parent = "A"
        path = "."
        this_name = true
        [[session.sources]]
        files = ["B.thy"]

        [[session]]
        name = "Fail"
        path = "."

        [[session]]
        name = "Child"
        parent = "Fail"
        path = "."
    """))
    settings = tmp_path / "settings.toml"
    settings.write_text(
        "[build]\n"
        f"output_dir = '{tmp_path / 'out'}'\n"
        f"system_output_dir = '{tmp_path / 'system'}'\n"
        "poll_interval = 0.01\n"
        f"build_command = '''{BUILD_COMMAND}'''\n"
    )
    return root, settings


def _invoke(settings, *args):
    runner = CliRunner()
    return runner.invoke(cli.main, ["--settings", str(settings), *args])


def test_build_then_current(tmp_path):
    root, settings = _project(tmp_path)

    result = _invoke(settings, "-d", str(root), "B")
    assert result.exit_code == 0, result.output
    assert "Building A ..." in result.output
    assert "Running B ..." in result.output
    assert "Finished B" in result.output
    assert (tmp_path / "out" / "A").read_text() == "heap of A\n"
    assert (tmp_path / "out" / "log" / "B.gz").exists()
    assert (tmp_path / "out" / "log" / "run_summary.log").exists()

    again = _invoke(settings, "-d", str(root), "B")
    assert again.exit_code == 0
    assert "Running" not in again.output
    assert "Building" not in again.output


def test_source_change_rebuilds(tmp_path):
    root, settings = _project(tmp_path)
    assert _invoke(settings, "-d", str(root), "B").exit_code == 0
    (root / "B.thy").write_text("b changed")
    result = _invoke(settings, "-d", str(root), "B")
    assert result.exit_code == 0
    assert "Running B ..." in result.output
    assert "Building A" not in result.output


def test_failure_cancels_children(tmp_path):
    root, settings = _project(tmp_path)
    result = _invoke(settings, "-d", str(root), "-j", "2", "-a")
    assert result.exit_code == 3
    assert "Fail FAILED" in result.output
    assert "building Fail" in result.output
    assert "Fail-Child CANCELLED" in result.output
    assert "Unfinished session(s): Fail, Fail-Child" in result.output
    assert (tmp_path / "out" / "log" / "Fail").exists()
    assert (tmp_path / "out" / "log" / "B.gz").exists()


def test_no_build_reports_outdated(tmp_path):
    root, settings = _project(tmp_path)
    result = _invoke(settings, "-d", str(root), "-n", "-g", "main")
    assert result.exit_code == 1
    assert "Building" not in result.output
    assert not (tmp_path / "out" / "log" / "A.gz").exists()


def test_clean_build_rebuilds_selection_only(tmp_path):
    root, settings = _project(tmp_path)
    assert _invoke(settings, "-d", str(root), "B").exit_code == 0
    result = _invoke(settings, "-d", str(root), "-c", "B")
    assert result.exit_code == 0
    assert "Cleaning B ..." in result.output
    assert "Running B ..." in result.output
    assert "Building A" not in result.output


def test_nothing_selected(tmp_path):
    root, settings = _project(tmp_path)
    result = _invoke(settings, "-d", str(root))
    assert result.exit_code == 0
    assert "### Nothing to build" in result.output


def test_undefined_session_is_structural_error(tmp_path):
    root, settings = _project(tmp_path)
    result = _invoke(settings, "-d", str(root), "Nope")
    assert result.exit_code == 2
    assert 'Undefined session(s): "Nope"' in result.output
    assert not (tmp_path / "out" / "log" / "A.gz").exists()


def test_bad_option_spec(tmp_path):
    root, settings = _project(tmp_path)
    result = _invoke(settings, "-d", str(root), "-o", "=x", "A")
    assert result.exit_code == 2


def test_jobs_must_be_positive(tmp_path):
    root, settings = _project(tmp_path)
    result = _invoke(settings, "-d", str(root), "-j", "0", "A")
    assert result.exit_code == 2


def test_selected_session_children_not_built(tmp_path):
    root, settings = _project(tmp_path)
    result = _invoke(settings, "-d", str(root), "A")
    assert result.exit_code == 0, result.output
    assert "Running A ..." in result.output
    assert "Running B" not in result.output
    assert not (tmp_path / "out" / "log" / "B.gz").exists()


def test_system_build_reused_by_user_run(tmp_path):
    root, settings = _project(tmp_path)
    system = _invoke(settings, "-d", str(root), "-s", "B")
    assert system.exit_code == 0, system.output
    assert (tmp_path / "system" / "A").exists()
    assert (tmp_path / "system" / "log" / "B.gz").exists()

    user = _invoke(settings, "-d", str(root), "B")
    assert user.exit_code == 0
    assert "Building" not in user.output
    assert "Running" not in user.output
    assert not (tmp_path / "out" / "log" / "B.gz").exists()


def test_output_layout_search_order(tmp_path):
    settings = BuildSettings(
        output_dir=str(tmp_path / "out"),
        system_output_dir=str(tmp_path / "system"),
        heap_dirs=[str(tmp_path / "shared")],
    )
    layout = output_layout(settings, heap_dirs=[tmp_path / "extra"])
    assert layout.output_dir == tmp_path / "out"
    assert layout.input_dirs == [
        tmp_path / "out", tmp_path / "shared", tmp_path / "extra", tmp_path / "system",
    ]

    system = output_layout(settings, system_mode=True)
    assert system.output_dir == tmp_path / "system"
    assert system.input_dirs == [tmp_path / "system"]

    same = BuildSettings(output_dir=str(tmp_path), system_output_dir=str(tmp_path))
    assert output_layout(same).input_dirs == [tmp_path]
