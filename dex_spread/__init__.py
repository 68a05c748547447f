"""
DEX Spread - Real-time ThalaSwap vs Cellana APT/USDC analytics on Aptos.

Architecture:
- datafeed/: Pangea log stream and per-exchange event normalization
- engine/: Pool state, constant-product pricing, spread/volume buffers, snapshots
- ui/: Status, swap, volume, depth, spread and liquidity panels (Textual TUI)
"""

__version__ = "0.1.0"
