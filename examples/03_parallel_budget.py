"""
Parallel Replicates with a Time Budget
======================================

Replicates are independent, so they can run on several worker processes.
Results do not depend on scheduling: every replicate seeds itself from
the base seed and its own index. A wall-clock budget stops the run early
and reports power over the replicates that finished.
"""

from nipower import NIPower

model = NIPower.from_config(
    {
        "n_f2f": 50,
        "n_app_expert": 30,
        "n_app_nonexpert": 30,
        "d_f2f": 1.24,
        "d_app_expert": 1.0,
        "d_app_nonexpert": 0.8,
        "icc": 0.5,
        "dropout_rate": 0.2,
        "ni_margin": 0.5,
        "prob_threshold": 0.89,
        "n_simulations": 200,
        "seed": 2024,
    }
)
model.set_parallel(True, n_cores=4)
model.set_time_budget(seconds=30 * 60)

result = model.find_power(return_results=True)
print(f"Status: {result['results']['status']}")
