"""APLO pool swapper: pool resolution, alias routing and approve/swap orchestration."""

__version__ = "0.1.0"
