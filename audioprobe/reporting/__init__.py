from .report import Measurement, MeasurementReport

__all__ = [
    "Measurement",
    "MeasurementReport",
]
