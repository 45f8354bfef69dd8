from pathlib import Path
import json
import sys
import time

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from session_build.lib.jobs import job_args, start_job
from session_build.lib.paths import OutputLayout
from session_build.lib.queue import SessionInfo, SessionQueue
from session_build.lib.scheduler import Scheduler


def _wait(job, timeout=10.0):
    deadline = time.monotonic() + timeout
    while not job.is_finished():
        assert time.monotonic() < deadline, "job did not finish"
        time.sleep(0.02)
    return job.join()


def _info(tmp_path, **kw):
    return SessionInfo(dir=tmp_path, **kw)


def test_job_captures_output_and_exit_code(tmp_path):
    job = start_job(
        "A", _info(tmp_path), "heap: -", tmp_path / "out" / "A", False,
        script='echo "hello $TARGET"; echo oops >&2; exit 0',
    )
    out, err, rc = _wait(job)
    assert rc == 0
    assert out == "hello A\n"
    assert err == "oops\n"
    assert job.elapsed is not None
    # join is idempotent
    assert job.join() == (out, err, rc)


def test_job_nonzero_exit(tmp_path):
    job = start_job("A", _info(tmp_path), "heap: -", tmp_path / "A", False, script="exit 7")
    assert _wait(job)[2] == 7


def test_job_environment_and_args_file(tmp_path):
    (tmp_path / "Main.thy").write_text("x")
    info = _info(
        tmp_path,
        parent="Base",
        options={"timeout": "60"},
        sources=(({}, ("Main.thy",)),),
    )
    output = tmp_path / "out" / "B"
    script = (
        'echo "$INPUT|$TARGET|$OUTPUT|$DO_OUTPUT|$(pwd)"; '
        'cat "$ARGS_FILE"; '
        'echo built > "$OUTPUT"'
    )
    job = start_job("B", info, "heap: 1 2", output, True, script=script, verbose=True)
    args_file = job.args_file
    assert args_file.name.startswith("args-B-")
    assert job.output_path == output

    out, _, rc = _wait(job)
    assert rc == 0
    first, rest = out.split("\n", 1)
    inp, target, out_path, do_output, cwd = first.split("|")
    assert (inp, target, do_output) == ("Base", "B", "true")
    assert Path(out_path) == output.resolve()
    assert Path(cwd).resolve() == tmp_path.resolve()

    args = json.loads(rest)
    assert args["name"] == "B"
    assert args["parent"] == "Base"
    assert args["options"] == {"timeout": "60"}
    assert args["verbose"] is True
    assert args["sources"] == [[{}, [str(tmp_path / "Main.thy")]]]

    assert output.read_text() == "built\n"
    assert not args_file.exists()


def test_stale_output_removed_when_not_kept(tmp_path):
    output = tmp_path / "C"
    output.write_text("old heap")
    job = start_job("C", _info(tmp_path), "heap: -", output, False, script="true")
    _wait(job)
    assert job.output_path is None
    assert not output.exists()


def test_concurrent_jobs_get_distinct_args_files(tmp_path):
    a = start_job("X", _info(tmp_path), "heap: -", tmp_path / "X", False, script="sleep 0.1")
    b = start_job("X", _info(tmp_path), "heap: -", tmp_path / "X", False, script="sleep 0.1")
    assert a.args_file != b.args_file
    _wait(a)
    _wait(b)


def test_terminate_stops_process(tmp_path):
    job = start_job("L", _info(tmp_path), "heap: -", tmp_path / "L", False, script="exec sleep 30")
    assert job.pid > 0
    job.terminate()
    _, _, rc = _wait(job)
    assert rc != 0


def test_job_args_is_sorted_json():
    info = SessionInfo(dir=Path("/s"), options={"b": "1", "a": "2"})
    text = job_args("N", info, False, False)
    assert json.loads(text)["parent"] == ""
    assert text.index('"do_output"') < text.index('"name"')


def test_interrupted_run_reaps_real_jobs(tmp_path):
    queue = SessionQueue().insert("L", _info(tmp_path))
    layout = OutputLayout(tmp_path / "out")
    layout.prepare()
    started = []

    def start(*args):
        job = start_job(*args, script="exec sleep 30")
        started.append(job)
        return job

    def interrupt(_):
        raise KeyboardInterrupt

    scheduler = Scheduler(queue, lambda n: "sources: ", layout, start, sleep=interrupt)
    with pytest.raises(KeyboardInterrupt):
        scheduler.run()

    (job,) = started
    assert job.is_finished()
    assert not job.args_file.exists()
    assert job.join()[2] != 0
