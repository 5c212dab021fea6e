"""Packaging strategies, one per packaging variant.

Import the concrete modules (`strategies`, `naming`, ...) directly; this
package init stays empty so the planner can use `naming` without pulling in
the builder.
"""
