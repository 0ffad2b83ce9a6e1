# Price Charts - Charts Package
"""
Interactive chart rendering for a single instrument.

- surface: matplotlib panes and series handles
- orchestrator: load lifecycle of the primary and subordinate panes
- sync: visible-range lockstep between panes
- visibility: show/hide existing overlay series
- tooltip: crosshair readout assembly
- timeframes: timeframe to candle request resolution
"""
