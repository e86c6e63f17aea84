"""
Block Randomization Example
===========================

Allocation list for two severity strata of 90 participants each, with
blocks of three so that every block assigns each arm exactly once.
"""

from nipower import stratified_block_randomize

allocation = stratified_block_randomize(
    {"Low": (90, "L"), "High": (90, "H")},
    block_size=3,
    seed=42,
)

print(allocation.head(9).to_string(index=False))
print()
print(allocation.groupby(["stratum", "treatment"]).size())
