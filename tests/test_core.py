# tests/test_core.py
from surfgrowth import BallisticDeposition, DepositionEngine


def test_small_run():
    engine = DepositionEngine(BallisticDeposition(), seed=0)
    engine.init({"L": 32, "H": 1024, "dH": 64})
    engine.run(100)
    assert len(engine.series) == 100
    assert engine.height.sum() >= 0
