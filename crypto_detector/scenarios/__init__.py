"""
Counterfactual scenario simulator.

Modules
-------
price_path  Price-path reconstruction and linear interpolation.
duration    Alternative-horizon replays re-derived with the temporal model.
trading     Take-profit / stop-loss / max-hold replays and composite ranking.
analysis    Combined analysis and optimisation feed for a completed cycle.
"""
