import math

import pytest
from uncertainties import ufloat

from ucnareplay.common import Side
from ucnareplay.calibration import TriggerEfficiencyStore, TriggerEfficiencyRecord
from ucnareplay.mathstat import TriggerEfficiencyFit


def make_fit(side=Side.EAST, tube=1, center=30.0, success=True) -> TriggerEfficiencyFit:
    return TriggerEfficiencyFit(
        center=ufloat(center, 1.0),
        width=ufloat(20.0, 2.0),
        shape=ufloat(2.0, 0.1),
        plateau=ufloat(0.98, math.nan),
        seed=28.0,
        success=success,
        side=side,
        tube=tube,
    )


def test_upload_replaces():
    store = TriggerEfficiencyStore()
    store.upload_fit(14077, make_fit(center=30.0))
    store.upload_fit(14077, make_fit(center=35.0))
    assert len(store) == 1
    record = store.get(14077, Side.EAST, 1)
    assert record.params[0] == 35.0
    assert record.n_eff == pytest.approx(35.0 / 20.0 * 2.0)
    store.upload_fit(14077, make_fit(tube=2))
    store.upload_fit(14078, make_fit(tube=2))
    assert len(store) == 3
    assert (14078, Side.EAST, 2) in store
    assert store.get(14078, Side.WEST, 2) is None


def test_delete_run():
    store = TriggerEfficiencyStore()
    for tube in range(4):
        store.upload_fit(1, make_fit(tube=tube))
        store.upload_fit(2, make_fit(tube=tube))
    assert store.delete_run(1) == 4
    assert len(store) == 4
    assert store.delete_run(1) == 0


def test_fit_without_channel_cannot_be_stored():
    with pytest.raises(ValueError):
        TriggerEfficiencyRecord.from_fit(1, make_fit(side=None))


def test_dataframe_and_parquet(tmp_path):
    store = TriggerEfficiencyStore()
    store.upload_fit(14077, make_fit(side=Side.WEST, tube=0, success=False))
    store.upload_fit(14077, make_fit(side=Side.EAST, tube=3))
    df = store.to_df()
    assert df.height == 2
    assert df["side"].to_list() == ["E", "W"]
    assert df["success"].to_list() == [True, False]
    assert df["center_err"].to_list() == [1.0, 1.0]
    assert math.isnan(df["plateau_err"][0])

    path = tmp_path / "trigger_efficiency.parquet"
    store.write_parquet(path)
    loaded = TriggerEfficiencyStore.read_parquet(path)
    assert len(loaded) == 2
    assert loaded.get(14077, Side.WEST, 0).success is False
    assert loaded.get(14077, Side.EAST, 3).params == store.get(14077, Side.EAST, 3).params


def test_empty_store():
    df = TriggerEfficiencyStore().to_df()
    assert df.height == 0
    assert "n_eff" in df.columns
