"""
Replicate Study Example
=======================

This example repeats the generate-and-fit cycle many times to check how well
a half-sib design recovers the true heritability, and how much a larger
design helps.
"""

import halfsib

print("=" * 60)
print("REPLICATE STUDY EXAMPLE")
print("=" * 60)

# 1. The default design: 5 sires x 2 dams, 100 offspring
model = halfsib.HalfSib()
model.set_variances(sire=3.0, dam=2.0, residual=5.0)
model.set_seed(2137)

expected = model.design
print(f"\nTrue variances: sire={expected.sire_sd ** 2}, dam={expected.dam_sd ** 2}, residual={expected.residual_sd ** 2}")

# 2. Small design: expect large spread and some failed fits
print("\n1. SMALL DESIGN (5 sires, 100 offspring):")
model.set_max_failed_fits(0.2)
small = model.run_replicates(
    100,
    summary="long",
    progress_callback=halfsib.PrintReporter(),
)

# 3. Larger design: 20 sires x 3 dams, 600 offspring
print("\n2. LARGER DESIGN (20 sires, 600 offspring):")
model.set_design(
    n_sires=20,
    n_dams=60,
    dams_per_sire=3,
    n_individuals=600,
    pond_counts=(150, 150, 150, 150),
    sex_counts=(300, 300),
)
large = model.run_replicates(
    100,
    summary="long",
    progress_callback=halfsib.PrintReporter(),
)

# 4. Compare the spread of the combined heritability
print("\n" + "=" * 60)
print("COMPARISON")
print("=" * 60)
for label, study in [("Small", small), ("Large", large)]:
    table = study.summary_table()
    print(
        f"{label:<6} h2_combined: mean={table.loc['h2_combined', 'mean']:.3f} "
        f"sd={table.loc['h2_combined', 'sd']:.3f} "
        f"(expected {study.expected.combined:.3f}, failed {study.n_failed})"
    )

# Set plot=True in run_replicates to see histograms of the estimates.
