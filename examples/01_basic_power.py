"""
Basic Power Analysis Example
============================

Power of the preregistered three-arm design: face-to-face therapy (F2F)
versus expert-guided (App_Expert) and non-expert-guided (App_NonExpert)
app delivery, each with a large pre-post improvement.
"""

import nipower

print("=" * 60)
print("BASIC NON-INFERIORITY POWER ANALYSIS")
print("=" * 60)

# 1. Start from the preregistered design and state the assumptions explicitly
model = nipower.NIPower()
model.set_sample_sizes("f2f=50, app_expert=30, app_nonexpert=30")

# d = 1.24 is the pre-post improvement in baseline SD units for every arm
model.set_effects("f2f=1.24, app_expert=1.24, app_nonexpert=1.24")

# Half of the outcome variance is stable between persons
model.set_icc(0.5)

# One in five participants misses the post-treatment assessment
model.set_dropout(0.20)

# 2. Decision rule: P(contrast < 0.5) must exceed 0.89
model.set_margin(0.5).set_threshold(0.89)

# 3. Keep the example quick: fewer replicates and shorter chains
model.set_simulations(20)
model.set_sampler_settings(draws=500, tune=500, chains=4, min_ess=200)
model.set_seed(1)

result = model.find_power(summary="long", return_results=True)

# 4. Tabular report, one row per hypothesis
print(model.power_table().to_string(index=False))
