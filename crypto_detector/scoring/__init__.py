"""
Factor scoring model.

Modules
-------
factors      Banded potential / resistance factor functions.
model        BoostPower aggregation, classification, prediction construction.
validation   Prediction validation against realised changes.
engine       ``score_asset`` / ``score_assets`` entry points.
calibration  Online EMA calibration of predictions from realised outcomes.
"""
