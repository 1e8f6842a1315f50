"""resources/ -- Resource directory package: models, query builder, repository.

Layer rule: resources/ imports only stdlib, third-party libraries and core/.
It does NOT import from auth/.
"""
