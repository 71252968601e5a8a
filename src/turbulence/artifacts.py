"""Persisted artifact records and their JSON I/O.

Records serialize with camelCase keys. Every field is required on read, so a
record that omits a field fails validation while an explicit ``null`` is
accepted for the nullable ones.
"""
from __future__ import annotations

import datetime as dt
import json
import os
from pathlib import Path
from typing import Optional, Sequence, TypeVar

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator
from pydantic.alias_generators import to_camel

RecordT = TypeVar("RecordT", bound=BaseModel)


class ArtifactRecord(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    date: dt.date


class ShockPoint(ArtifactRecord):
    n_assets: int = Field(ge=0)
    n_pairs: int = Field(ge=0)
    shock_raw: Optional[float]
    shock_z: Optional[float]

    @model_validator(mode="after")
    def check_pairs(self) -> "ShockPoint":
        expected = self.n_assets * (self.n_assets - 1) // 2
        if self.n_pairs != expected:
            raise ValueError(f"nPairs={self.n_pairs} does not match nAssets={self.n_assets}")
        return self


class GateReading(ArtifactRecord):
    """The gate fields the green-bar join consumes; other fields are ignored."""

    model_config = ConfigDict(extra="ignore")

    spx_above_50dma: Optional[bool] = Field(alias="spxAbove50dma")
    vix_below_25: Optional[bool] = Field(alias="vixBelow25")


class GatePoint(GateReading):
    spx: Optional[float]
    spx_50dma: Optional[float] = Field(alias="spx50dma")
    vix: Optional[float]


class CompositeSignalPoint(ArtifactRecord):
    shock_z: Optional[float]
    shock_raw: Optional[float]
    spx_above_50dma: Optional[bool] = Field(alias="spxAbove50dma")
    vix_below_25: Optional[bool] = Field(alias="vixBelow25")
    is_signal: Optional[bool]


def record_date(record: ArtifactRecord) -> dt.date:
    return record.date


def read_artifact(path: str | Path, model: type[RecordT]) -> list[RecordT]:
    """Parse a JSON array artifact into *model* records.

    Raises ``FileNotFoundError`` if the file is missing and
    ``pydantic.ValidationError`` if it is not a well-formed array of records.
    """
    with open(path, "r", encoding="utf-8") as f:
        raw = f.read()
    return TypeAdapter(list[model]).validate_json(raw)  # type: ignore[valid-type]


def write_artifact(path: str | Path, records: Sequence[BaseModel]) -> Path:
    """Write *records* as a pretty-printed JSON array.

    The file is written beside the target and moved into place, so an
    interrupted write never leaves a truncated artifact.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = [r.model_dump(mode="json", by_alias=True) for r in records]
    tmp_path = path.with_name(path.name + ".tmp")
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
        f.write("\n")
    os.replace(tmp_path, path)
    return path
