"""LogiOps: back-office service for drivers, vehicles, contracts, fares and settlements."""

__version__ = "0.1.0"
