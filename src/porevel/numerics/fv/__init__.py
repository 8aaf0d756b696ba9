"""Finite volume velocity reconstruction with the MPFA-O method.

The reconstruction is split into the localization of interaction regions around grid
vertices, the solution of the local linear systems of each region, the accumulation of
half-edge fluxes into a velocity field, and a conservation check of the result.

"""
