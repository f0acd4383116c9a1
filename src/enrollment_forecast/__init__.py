"""Monte Carlo forecasting of clinical-trial enrollment and site start-up."""

__version__ = "0.1.0"
