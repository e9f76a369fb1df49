"""
lending/ - Flash-loan sources.

Modules:
- reserves: reserve lookup in a lending market object
- flash_loans: Suilend / Navi providers and fallback router
"""
