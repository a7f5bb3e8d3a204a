"""
Measured activity data with asymmetric uncertainties.

Each measurement carries separate uncertainties below (err_minus) and above
(err_plus) the observed value. The embedded dataset was generated from the
decay law with A0 = 1000 and λ = 0.1.
"""

from dataclasses import dataclass, field
from typing import Iterable, Iterator
import numpy as np
from numpy.typing import NDArray


@dataclass(frozen=True)
class DataPoint:
    """
    A single activity measurement.

    Attributes:
        observed: Measured activity A(t)
        t: Measurement time (e.g. days)
        err_minus: Uncertainty below the observed value
        err_plus: Uncertainty above the observed value
    """
    observed: float
    t: float
    err_minus: float
    err_plus: float

    @property
    def err(self) -> float:
        """Combined symmetric uncertainty (not used by the chi-square)."""
        return float(np.hypot(self.err_minus, self.err_plus))


@dataclass(frozen=True)
class Dataset:
    """
    Ordered, immutable sequence of measurements.

    All uncertainties must be strictly positive, since the chi-square
    divides by them.

    Example:
        >>> data = Dataset.from_points([DataPoint(100.0, 0.0, 10.0, 5.0)])
        >>> len(data)
        1
    """
    points: tuple[DataPoint, ...]
    _arrays: dict[str, NDArray[np.float64]] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self):
        points = tuple(self.points)
        for i, dp in enumerate(points):
            if not (dp.err_minus > 0 and dp.err_plus > 0):
                raise ValueError(
                    f"Uncertainties must be strictly positive "
                    f"(point {i}: err_minus={dp.err_minus}, err_plus={dp.err_plus})"
                )

        arrays = {
            name: np.array([getattr(dp, name) for dp in points], dtype=np.float64)
            for name in ("observed", "t", "err_minus", "err_plus")
        }
        for arr in arrays.values():
            arr.setflags(write=False)

        object.__setattr__(self, "points", points)
        object.__setattr__(self, "_arrays", arrays)

    @classmethod
    def from_points(cls, points: Iterable[DataPoint]) -> "Dataset":
        return cls(tuple(points))

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self) -> Iterator[DataPoint]:
        return iter(self.points)

    def __getitem__(self, index: int) -> DataPoint:
        return self.points[index]

    @property
    def times(self) -> NDArray[np.float64]:
        return self._arrays["t"]

    @property
    def observed(self) -> NDArray[np.float64]:
        return self._arrays["observed"]

    @property
    def err_minus(self) -> NDArray[np.float64]:
        return self._arrays["err_minus"]

    @property
    def err_plus(self) -> NDArray[np.float64]:
        return self._arrays["err_plus"]

    @property
    def err(self) -> NDArray[np.float64]:
        """Combined symmetric uncertainties."""
        return np.hypot(self.err_minus, self.err_plus)


# Pseudo-data (A0_true = 1000, lambda_true = 0.1)
DEFAULT_DATASET = Dataset((
    DataPoint(observed=995.0, t=0.0, err_minus=30.0, err_plus=30.0),
    DataPoint(observed=615.0, t=5.0, err_minus=20.0, err_plus=20.0),
    DataPoint(observed=375.0, t=10.0, err_minus=15.0, err_plus=15.0),
    DataPoint(observed=220.0, t=15.0, err_minus=10.0, err_plus=10.0),
    DataPoint(observed=140.0, t=20.0, err_minus=8.0, err_plus=8.0),
    DataPoint(observed=85.0, t=25.0, err_minus=5.0, err_plus=5.0),
    DataPoint(observed=51.0, t=30.0, err_minus=4.0, err_plus=4.0),
    DataPoint(observed=32.0, t=35.0, err_minus=3.0, err_plus=3.0),
    DataPoint(observed=17.5, t=40.0, err_minus=2.0, err_plus=2.0),
))
