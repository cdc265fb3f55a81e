"""Bundle tier pricing and rule-based quotes with price-locking acceptance."""
