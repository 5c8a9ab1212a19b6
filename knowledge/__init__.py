"""
growthwatch knowledge base.

Contains the population reference data and statistics:
- Growth reference datasets (WHO 2006, CDC 2000)
- LMS transform and percentile calculator
"""
