"""Domain layer: candidate tuples, merge engine, resolvers and ports."""
