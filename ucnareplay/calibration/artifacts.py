"""
Storage for per-run calibration artifacts: the fitted trigger-efficiency parameters of each PMT.

Records are keyed by (run, side, tube). Uploading a record replaces any earlier one with the same key,
so replaying a run twice never leaves duplicates.
"""

from dataclasses import dataclass, field
from pathlib import Path
import logging

import polars as pl

from ..common import Side
from ..mathstat.fitting import TriggerEfficiencyFit, PARAM_NAMES

LOG = logging.getLogger("ucnareplay")

Key = tuple[int, Side, int]

SCHEMA = {
    "run": pl.Int64,
    "side": pl.Utf8,
    "tube": pl.Int64,
    **{name: pl.Float64 for name in PARAM_NAMES},
    **{f"{name}_err": pl.Float64 for name in PARAM_NAMES},
    "n_eff": pl.Float64,
    "success": pl.Boolean,
}


@dataclass(frozen=True)
class TriggerEfficiencyRecord:
    run: int
    side: Side
    tube: int
    params: tuple[float, float, float, float]
    errors: tuple[float, float, float, float]
    n_eff: float
    success: bool

    @property
    def key(self) -> Key:
        return (self.run, self.side, self.tube)

    @classmethod
    def from_fit(cls, run: int, fit: TriggerEfficiencyFit) -> "TriggerEfficiencyRecord":
        if fit.side is None or fit.tube is None:
            raise ValueError("a trigger-efficiency fit must know its side and tube to be stored")
        return cls(
            run=int(run),
            side=Side(fit.side),
            tube=int(fit.tube),
            params=tuple(float(v) for v in fit.params()),
            errors=tuple(float(v) for v in fit.param_errors()),
            n_eff=float(fit.n.nominal_value),
            success=fit.success,
        )

    def as_row(self) -> dict:
        row = {"run": self.run, "side": self.side.letter, "tube": self.tube}
        row.update(dict(zip(PARAM_NAMES, self.params)))
        row.update({f"{name}_err": e for name, e in zip(PARAM_NAMES, self.errors)})
        row.update(n_eff=self.n_eff, success=self.success)
        return row

    @classmethod
    def from_row(cls, row: dict) -> "TriggerEfficiencyRecord":
        return cls(
            run=int(row["run"]),
            side=Side.from_letter(row["side"]),
            tube=int(row["tube"]),
            params=tuple(float(row[name]) for name in PARAM_NAMES),
            errors=tuple(float(row[f"{name}_err"]) for name in PARAM_NAMES),
            n_eff=float(row["n_eff"]),
            success=bool(row["success"]),
        )


@dataclass
class TriggerEfficiencyStore:
    """An in-memory table of trigger-efficiency records, savable as parquet."""

    records: dict[Key, TriggerEfficiencyRecord] = field(default_factory=dict)

    def upload(self, record: TriggerEfficiencyRecord) -> None:
        if record.key in self.records:
            LOG.info("Replacing trigger efficiency for run %d side %s tube %d", record.run, record.side.letter, record.tube)
        self.records[record.key] = record

    def upload_fit(self, run: int, fit: TriggerEfficiencyFit) -> TriggerEfficiencyRecord:
        record = TriggerEfficiencyRecord.from_fit(run, fit)
        self.upload(record)
        return record

    def delete_run(self, run: int) -> int:
        """Drop all records of one run; return how many were dropped."""
        keys = [k for k in self.records if k[0] == run]
        for k in keys:
            del self.records[k]
        return len(keys)

    def get(self, run: int, side: Side, tube: int) -> TriggerEfficiencyRecord | None:
        return self.records.get((run, side, tube))

    def __len__(self) -> int:
        return len(self.records)

    def __contains__(self, key: Key) -> bool:
        return key in self.records

    def to_df(self) -> pl.DataFrame:
        rows = [self.records[k].as_row() for k in sorted(self.records)]
        return pl.DataFrame(rows, schema=SCHEMA)

    def write_parquet(self, path: str | Path) -> None:
        self.to_df().write_parquet(path)

    @classmethod
    def read_parquet(cls, path: str | Path) -> "TriggerEfficiencyStore":
        store = cls()
        for row in pl.read_parquet(path).iter_rows(named=True):
            store.upload(TriggerEfficiencyRecord.from_row(row))
        return store
