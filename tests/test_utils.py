import json

import numpy as np
import pytest

from surfgrowth import BallisticDeposition, DepositionEngine, utils


def test_save_and_load_run(tmp_path):
    engine = DepositionEngine(BallisticDeposition(), seed=5)
    engine.init({"L": 16, "H": 1024, "dH": 64})
    engine.run(300)

    result = utils.result_from_engine(engine)
    result.ensure_meta()["beta"] = 0.31
    path = tmp_path / "runs" / "ballistic.npz"
    utils.save_run_result(path, result)

    loaded = utils.load_run_result(path)
    assert np.array_equal(loaded.height, engine.height)
    assert np.allclose(loaded.widths, engine.series.to_array())
    assert loaded.window.shape == (64, 16)
    assert loaded.meta["model"] == "ballistic"
    assert loaded.meta["t"] == 299
    assert loaded.meta["beta"] == 0.31
    assert loaded.meta["L"] == 16


def test_save_refuses_overwrite(tmp_path):
    path = tmp_path / "r.npz"
    utils.save_run_result(path, utils.RunResult(widths=np.zeros(3)))
    with pytest.raises(FileExistsError):
        utils.save_run_result(path, utils.RunResult(), overwrite=False)
    assert utils.load_run_result(path).height is None


def test_load_params_json_and_toml(tmp_path):
    js = tmp_path / "p.json"
    js.write_text(json.dumps({"L": 64, "model": "random"}))
    assert utils.load_params(js) == {"L": 64, "model": "random"}

    toml = tmp_path / "p.toml"
    toml.write_text('model = "ballistic"\nL = 32\nH = 4096\n')
    assert utils.load_params(toml) == {"model": "ballistic", "L": 32, "H": 4096}

    with pytest.raises(ValueError):
        bad = tmp_path / "p.yaml"
        bad.write_text("L: 3")
        utils.load_params(bad)


def test_run_statistics_to_dict():
    stats = utils.RunStatistics(L=8, t=10, h_avg=2.5, w=0.4)
    d = stats.to_dict()
    assert d["L"] == 8 and d["w"] == 0.4
    assert np.isnan(d["alpha"])
