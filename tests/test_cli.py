"""End-to-end tests for the command-line entry point."""

import json

import pytest

import forecast_engine


@pytest.fixture
def series_csv(tmp_path):
  path = tmp_path / "sales.csv"
  rows = ["date,value"] + [f"2024-{month:02d}-01,{100 + 10 * (month - 1)}" for month in range(1, 13)]
  path.write_text("\n".join(rows) + "\n")
  return path


def _run(capsys, *argv):
  code = forecast_engine.main(list(argv))
  captured = capsys.readouterr()
  return code, captured.out, captured.err


class TestCli:

  @pytest.mark.integration
  def test_models(self, capsys):
    code, out, _ = _run(capsys, "models", "--category", "ai_powered")
    assert code == 0
    assert [m["id"] for m in json.loads(out)] == ["neural-network"]

  @pytest.mark.integration
  def test_score(self, capsys, series_csv):
    code, out, _ = _run(capsys, "score", str(series_csv), "--type", "sales")
    ranked = json.loads(out)
    assert code == 0
    assert len(ranked) == 8
    assert ranked[0]["score"] >= ranked[-1]["score"]

  @pytest.mark.integration
  def test_generate_record_and_track(self, capsys, series_csv, tmp_path):
    data_dir = str(tmp_path / "data")
    code, out, _ = _run(
        capsys, "--data-dir", data_dir, "generate", str(series_csv), "--model", "linear-regression", "--horizon", "3", "--seed", "1", "--save"
    )
    assert code == 0
    forecast = json.loads(out)
    assert [p["date"] for p in forecast["predicted_series"]] == [
        "2025-01-01T00:00:00",
        "2025-02-01T00:00:00",
        "2025-03-01T00:00:00",
    ]

    code, out, _ = _run(capsys, "--data-dir", data_dir, "record-outcome", forecast["id"], "2025-01-01", "222")
    assert code == 0
    assert json.loads(out)["outcome_date"] == "2025-01-01T00:00:00"

    code, out, err = _run(capsys, "--data-dir", data_dir, "record-outcome", forecast["id"], "2025-01-01", "222")
    assert code == 2
    assert "DuplicateOutcomeError" in err

    code, out, _ = _run(capsys, "--data-dir", data_dir, "accuracy", forecast["id"])
    assert json.loads(out)["accuracy"] > 90

    code, out, _ = _run(capsys, "--data-dir", data_dir, "pending", "--as-of", "2025-06-01")
    assert [p["prediction_date"] for p in json.loads(out)] == ["2025-02-01T00:00:00", "2025-03-01T00:00:00"]

  @pytest.mark.integration
  def test_insufficient_data_is_reported(self, capsys, tmp_path):
    empty = tmp_path / "empty.json"
    empty.write_text("[]")
    code, _, err = _run(capsys, "generate", str(empty), "--model", "linear-regression")
    assert code == 2
    assert "InsufficientDataError" in err

  @pytest.mark.integration
  def test_tasks_and_tick(self, capsys, tmp_path):
    data_dir = str(tmp_path / "data")
    code, out, _ = _run(capsys, "--data-dir", data_dir, "tasks", "--disable", "weekly_summary")
    assert code == 0
    tasks = {t["id"]: t for t in json.loads(out)["tasks"]}
    assert tasks["weekly_summary"]["status"] == "paused"

    code, out, _ = _run(capsys, "--data-dir", data_dir, "tick", "--now", "2099-01-01T00:00:00")
    ran = [r["task_id"] for r in json.loads(out)]
    assert "weekly_summary" not in ran
    assert "daily_accuracy_update" in ran

    code, out, _ = _run(capsys, "--data-dir", data_dir, "tasks", "--history", "1")
    assert len(json.loads(out)["history"]) == 1
