"""
Settings snapshot
- What a front end needs to restore a session: the single-scenario inputs,
  the break-even search range and the sweep grid.
- Serialized as JSON text; storing it is up to the caller.
"""

import json
from dataclasses import dataclass, field, asdict, fields
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from . import policy
from .errors import ValidationError
from .params import AutoFlags, RawParams
from .sweep import SweepAxis, SweepField, SweepMode


@dataclass
class SingleSettings:
    params: RawParams = field(default_factory=RawParams)
    auto: AutoFlags = field(default_factory=AutoFlags)


@dataclass
class BreakevenSettings:
    min_price: float = policy.SOLVER_MIN_PRICE
    max_price: float = policy.SOLVER_MAX_PRICE
    tolerance: float = policy.SOLVER_TOLERANCE
    max_iterations: int = policy.SOLVER_MAX_ITERATIONS
    mortgage_amount: Optional[float] = None


@dataclass
class AxisSettings:
    field: str
    min: float
    max: float
    step: float

    def to_axis(self) -> SweepAxis:
        return SweepAxis(SweepField.from_name(self.field), self.min, self.max, self.step)


@dataclass
class SweepSettings:
    mode: str = SweepMode.MAX_BID.value
    axes: List[AxisSettings] = field(default_factory=list)

    def to_axes(self) -> List[SweepAxis]:
        return [a.to_axis() for a in self.axes]

    def sweep_mode(self) -> SweepMode:
        try:
            return SweepMode(self.mode)
        except ValueError:
            raise ValidationError.single("sweep.mode", f"unknown mode {self.mode!r}") from None


@dataclass
class Settings:
    single: SingleSettings = field(default_factory=SingleSettings)
    breakeven: BreakevenSettings = field(default_factory=BreakevenSettings)
    sweep: SweepSettings = field(default_factory=SweepSettings)
    version: int = policy.SETTINGS_VERSION
    timestamp: str = ""

    def to_json(self) -> str:
        data = asdict(self)
        data["timestamp"] = self.timestamp or datetime.now(timezone.utc).isoformat(timespec="seconds")
        return json.dumps(data, ensure_ascii=False, indent=2)

    @classmethod
    def from_json(cls, text: str) -> "Settings":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValidationError.single("settings", f"not valid JSON: {e}") from None
        if not isinstance(data, dict):
            raise ValidationError.single("settings", "expected a JSON object")
        version = data.get("version")
        if version != policy.SETTINGS_VERSION:
            raise ValidationError.single("version", f"unsupported settings version {version!r}")
        try:
            single = data.get("single", {})
            sweep = data.get("sweep", {})
            return cls(
                single=SingleSettings(
                    params=RawParams(**_known(RawParams, single.get("params", {}))),
                    auto=AutoFlags(**_known(AutoFlags, single.get("auto", {}))),
                ),
                breakeven=BreakevenSettings(**_known(BreakevenSettings, data.get("breakeven", {}))),
                sweep=SweepSettings(
                    mode=sweep.get("mode", SweepMode.MAX_BID.value),
                    axes=[AxisSettings(**a) for a in sweep.get("axes", [])],
                ),
                version=version,
                timestamp=data.get("timestamp", ""),
            )
        except (TypeError, AttributeError) as e:
            raise ValidationError.single("settings", f"malformed snapshot: {e}") from None


def _known(cls: type, data: Dict[str, Any]) -> Dict[str, Any]:
    """Keep the keys ``cls`` knows; snapshots from newer builds may carry more."""
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}
