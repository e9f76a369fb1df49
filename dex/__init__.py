"""
dex/ - Cetus pool state, price orientation and quoting.

Modules:
- pool_state: pool snapshots with a read-through TTL cache
- orientation: sqrt price -> USDC/SUI price with orientation rules
- cetus: CLMM quote estimates and swap call construction
"""
