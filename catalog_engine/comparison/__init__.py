"""
Comparison selection: up to N products per category, side by side.

Modules
-------
transitions : resolve_active_category() — the pure active-category state
              machine, invoked synchronously after every mutation.
store       : ComparisonStore — keyed session store with per-(session,
              category) locks.
manager     : ComparisonManager — add / remove / toggle / set_active_category
              / clear / snapshot for one session.
"""
