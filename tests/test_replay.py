import pytest

from velofuse import FusionConfig, TimedSample, VelocityObservation
from velofuse.replay import interleave, load_velocity_csv, main, replay


@pytest.fixture
def recording(tmp_path):
    accel = tmp_path / "accel.csv"
    accel.write_text("t,x,y,z\n0,0,0,9.8\n100,1.0,0,9.8\n200,0,0,9.8\n")
    gps = tmp_path / "gps.csv"
    gps.write_text("timestamp,speed\n50,1.0\n150,\n")
    return accel, gps


def test_interleave_orders_by_time_accel_first():
    samples = [TimedSample(0, 0, 0, 1), TimedSample(100, 0, 0, 1)]
    observations = [VelocityObservation(50, 1.0), VelocityObservation(0, 2.0)]
    events = interleave(samples, observations)
    assert events == [samples[0], observations[1], observations[0], samples[1]]


def test_interleave_puts_non_finite_timestamps_last():
    nan_sample = TimedSample(float("nan"), 0, 0, 1)
    samples = [TimedSample(100, 0, 0, 1), nan_sample, TimedSample(0, 0, 0, 1)]
    observations = [VelocityObservation(50, 1.0)]
    events = interleave(samples, observations)
    assert events == [samples[2], observations[0], samples[0], nan_sample]


def test_replay_rejects_nan_timestamp_rows():
    samples = [TimedSample(t, 0.0, 0.0, 9.8) for t in (0.0, float("nan"), 20.0)]
    pipeline = replay(samples, [], FusionConfig())
    assert pipeline.rejected == 1
    assert [r.t for r in pipeline.export_records()] == [0.0, 20.0]


def test_load_velocity_csv_marks_absent(recording):
    _, gps = recording
    obs = load_velocity_csv(gps)
    assert obs == [VelocityObservation(50.0, 1.0), VelocityObservation(150.0, None)]


def test_replay_runs_full_session():
    samples = [TimedSample(t, 0.0, 0.0, 9.8) for t in (0, 10, 20)]
    pipeline = replay(samples, [VelocityObservation(15, 2.0)], FusionConfig(dt=1.0, process_variance=0.0))
    assert pipeline.velocity == pytest.approx(1.0)
    assert len(pipeline.export_records()) == 3


def test_main_writes_export(recording, tmp_path, capsys):
    accel, gps = recording
    out = tmp_path / "fused.csv"
    code = main(["--accel", str(accel), "--velocity", str(gps), "--out", str(out), "--dt", "0.1"])

    assert code == 0
    lines = out.read_text().split("\n")
    assert lines[0] == "timestamp,x,y,z,resultant,velocity"
    assert len(lines) == 4
    assert lines[1].startswith("1970-01-01T00:00:00.000Z,0.000,0.000,9.800,9.800,")
    assert "[Replay] Wrote 3 rows" in capsys.readouterr().out


def test_main_without_velocity_and_auto_dt(recording, tmp_path, capsys):
    accel, _ = recording
    out = tmp_path / "fused.csv"
    assert main(["--accel", str(accel), "--out", str(out), "--dt", "auto"]) == 0
    assert "Derived dt = 0.100000 s" in capsys.readouterr().out


def test_main_missing_columns(tmp_path, capsys):
    bad = tmp_path / "bad.csv"
    bad.write_text("time,foo\n0,1\n")
    assert main(["--accel", str(bad), "--out", str(tmp_path / "o.csv")]) == 2
    assert "missing column" in capsys.readouterr().out


def test_main_missing_file(tmp_path):
    assert main(["--accel", str(tmp_path / "nope.csv"), "--out", str(tmp_path / "o.csv")]) == 2


def test_main_invalid_dt(recording, tmp_path, capsys):
    accel, _ = recording
    assert main(["--accel", str(accel), "--out", str(tmp_path / "o.csv"), "--dt", "-1"]) == 2
    assert "Invalid configuration" in capsys.readouterr().out
    assert main(["--accel", str(accel), "--out", str(tmp_path / "o.csv"), "--dt", "fast"]) == 2
