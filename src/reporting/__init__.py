"""
Input validation and output shaping for audit runs: domain list parsing,
result JSON, and pandas summaries.
"""
