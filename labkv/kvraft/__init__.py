"""Namespace for the replicated key/value service; it currently holds no modules."""