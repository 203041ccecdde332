"""Load detection, ledger and calibration logic."""
