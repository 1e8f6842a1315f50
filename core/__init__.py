"""core/ -- Kernel package for Vet1Stop: configuration and output rendering.

Layer rule: core/ imports only stdlib + third-party libraries, plus the
domain dataclasses it renders. It never imports a store.
"""
