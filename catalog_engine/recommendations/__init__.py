"""
Recommendation engine: ranks candidate products under named strategies.

Modules
-------
context : RecommendationStrategy enum, RecommendationContext, RankedProduct.
signals : engagement, co-occurrence, similarity, recency and affinity
          signals — pure functions, no DB or I/O.
ranker  : rank() / score_candidates() — one function per strategy plus the
          shared deterministic tie-break.
"""
