"""
Operator jobs for SwipeSync.

Jobs:
- reconcile_predictions: Compare cached predictions with their contracts and resync drift
- recount_achievements: Reset achievement completion counters to the confirmation key count
"""
