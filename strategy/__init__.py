# PATH: strategy/__init__.py
"""Strategy package for TIERARB."""
