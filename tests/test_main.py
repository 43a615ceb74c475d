"""
Tests for the command line entry point.
"""

import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def csv_path(tmp_path):
    """CSV with three features and a linear target."""
    np.random.seed(1)
    X = np.random.randn(120, 3)
    df = pd.DataFrame(X, columns=["momentum", "spread", "volume"])
    df["target"] = 2.0 * df["momentum"] - df["spread"] + 0.05 * np.random.randn(120)
    path = tmp_path / "prices.csv"
    df.to_csv(path, index=False)
    return str(path)


class TestMain:
    """Tests for ensemble_engine.main."""

    def test_split_holdout(self):
        """The holdout is taken from the end, leaving at least one training row."""
        from ensemble_engine.dataset import TrainingDataset
        from ensemble_engine.main import split_holdout

        ds = TrainingDataset(X=np.arange(10.0).reshape(-1, 1), y=np.arange(10.0))
        train, holdout = split_holdout(ds, 0.2)
        assert len(train) == 8
        assert holdout.y.tolist() == [8.0, 9.0]

        train, holdout = split_holdout(ds, 1.0)
        assert len(train) == 1

    def test_train_and_evaluate(self, csv_path, config_dir, capsys):
        """Training a preset prints evaluation metrics."""
        from ensemble_engine.main import main

        code = main(["--data", csv_path, "--target", "target", "--config", config_dir])
        out = capsys.readouterr().out
        assert code == 0
        assert "ENSEMBLE: bagging_basic" in out
        assert "MSE:" in out
        assert "Top features:" in out

    def test_online_replay(self, csv_path, config_dir, capsys):
        """--online replays the holdout through the controller."""
        from ensemble_engine.main import main

        code = main([
            "--data", csv_path, "--target", "target",
            "--config", config_dir, "--online",
        ])
        out = capsys.readouterr().out
        assert code == 0
        assert "ONLINE LEARNING" in out
        assert "Updates:" in out

    def test_missing_file(self, tmp_path, config_dir):
        """A missing CSV exits with status 1."""
        from ensemble_engine.main import main

        code = main(["--data", str(tmp_path / "missing.csv"), "--target", "target",
                     "--config", config_dir])
        assert code == 1

    def test_unknown_preset(self, csv_path, config_dir):
        """An unknown preset exits with status 1."""
        from ensemble_engine.main import main

        code = main(["--data", csv_path, "--target", "target",
                     "--config", config_dir, "--preset", "voting"])
        assert code == 1
