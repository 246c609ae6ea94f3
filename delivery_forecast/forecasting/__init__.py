"""Monte Carlo forecasting of initiative delivery.

This package provides:
- Sample construction from per-context completion history
- Sample validation
- The bounded when / how-many simulation
- Interpretation of its output (percentiles, confidence, histograms, summary)
- The predictive analysis service that sequences them
"""
