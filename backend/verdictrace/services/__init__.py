"""
VerdictTrace Services

Detection (pure scoring), search adapters, case lifecycle, narrative,
notifications and scan orchestration.
"""
