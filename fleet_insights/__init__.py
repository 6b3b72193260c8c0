"""Fleet Insights - analytics and incident inference for tracker telemetry."""

__version__ = "1.0.0"
