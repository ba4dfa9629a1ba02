"""
Climate Test Suite

- test_climate_ingest.py — loading, month normalisation, schema checks
- test_climate_transform.py — filter / select / derive / sort
- test_climate_grouping.py — partition and ordering properties
- test_climate_aggregate.py — statistics, reduce and broadcast modes
- test_climate_fitting.py — per-group OLS fits and failure reporting
- test_climate_plotting.py — chart labelling
- test_climate_smoke.py — end-to-end runs on synthetic data
"""
