"""
Shop & Talent Operations Analytics

Multi-tenant rollup and KPI core for the shop and talent dashboards.
"""

__version__ = "1.0.0"
