"""MedCure pharmacy inventory core: FEFO batch allocation and demand forecasting."""

__version__ = "1.0.0"
