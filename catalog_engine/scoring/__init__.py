"""
Score engine: derives five 0–100 quality scores for a product.

Modules
-------
rules    : calculate_fit / feature / integration / review / overall —
           pure functions, no DB or I/O, each returning its factor breakdown.
strategy : ScoreStrategy capability interface + RuleBasedV1Strategy + registry.
engine   : compute_scores() (single product), compute_scores_batch()
           (parallel per product), build_score_reasoning().
"""
