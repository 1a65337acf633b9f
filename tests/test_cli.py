import json

import pandas as pd

from physiodyn.cli import main


def _write_scenario(tmp_path, scenario):
    path = tmp_path / "scenario.json"
    path.write_text(json.dumps(scenario))
    return str(path)


class TestHeadlessRun:

    def test_scenario_to_csv(self, tmp_path, capsys):
        scenario = _write_scenario(tmp_path, {
            "subject": {"age": 30, "weight": 70, "height": 175, "sex": "male"},
            "duration": 600,
            "interventions": [
                {"key": "food", "start": 0, "duration": 15, "params": {"sugar": 30, "starch": 30}},
            ],
        })
        output = tmp_path / "out" / "series.csv"
        snapshot = tmp_path / "homeostasis.json"
        code = main(["--scenario", scenario, "--duration", "60", "--output", str(output),
                     "--homeostasis-out", str(snapshot), "--record-homeostasis"])
        assert code == 0
        frame = pd.read_csv(output, index_col="minute")
        assert len(frame) == 61, "--duration overrides the scenario"
        assert "glucose" in frame.columns
        assert "homeostasis.glucose" in frame.columns
        assert "glucose" in json.loads(snapshot.read_text())
        assert "Wrote" in capsys.readouterr().out

    def test_default_scenario(self, tmp_path):
        output = tmp_path / "series.csv"
        assert main(["--duration", "10", "--dt", "2", "--output", str(output)]) == 0
        frame = pd.read_csv(output, index_col="minute")
        assert list(frame.index) == [0.0, 2.0, 4.0, 6.0, 8.0, 10.0]
        assert not any(c.startswith("homeostasis.") for c in frame.columns)

    def test_missing_scenario_file(self, tmp_path, capsys):
        code = main(["--scenario", str(tmp_path / "missing.json"), "--output", str(tmp_path / "x.csv")])
        assert code == 2
        assert "Error loading scenario" in capsys.readouterr().err

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        assert main(["--scenario", str(path), "--output", str(tmp_path / "x.csv")]) == 2

    def test_invalid_scenario(self, tmp_path, capsys):
        scenario = _write_scenario(tmp_path, {"duration": 30, "interventions": [{"key": "teleport"}]})
        output = tmp_path / "x.csv"
        assert main(["--scenario", scenario, "--output", str(output)]) == 2
        assert "Invalid scenario" in capsys.readouterr().err
        assert not output.exists()
