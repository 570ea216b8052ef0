# examples/quickstart.py
import numpy as np
import pandas as pd
import arraydeg
import arraydeg.limma as limma

# --- make a tiny toy array: 100 probesets x 3 probes, 9 samples ---
rng = np.random.default_rng(1)
groups = "100111000"  # 1 = case, 0 = control
is_case = np.array([g == "1" for g in groups])

features = [f"{1000 + i}_at" for i in range(100)]
probes = [f"{f}:{k}" for f in features for k in range(3)]
samples = [f"GSM{100 + j}" for j in range(len(groups))]

base = rng.uniform(5, 11, size=len(features))
log_feature = np.repeat(base[:, None], len(samples), axis=1)
log_feature[:5, is_case] += 3.0  # first five probesets up in case
log_probe = np.repeat(log_feature, 3, axis=0) + rng.normal(0, 0.2, size=(len(probes), len(samples)))

raw = arraydeg.make_experiment(
    {"intensity": 2.0 ** log_probe},
    row_names=probes,
    column_names=samples,
    row_data={"feature_id": [f for f in features for _ in range(3)]},
)

# One call: normalize, fit, moderate, adjust, select
res = arraydeg.run_analysis(raw, groups, config=arraydeg.AnalysisConfig(lfc=1.0))
print(res.degs[["feature_id", "log_fc", "adj_p_value"]])
print(res.calls)

# Or step by step
eset = limma.rma(raw)
design = arraydeg.model_matrix(arraydeg.parse_group_string(groups), sample_names=samples)
model = limma.lm_fit(eset, design).contrasts_fit("case-control").e_bayes(proportion=0.01)
tt = model.top_table(n=10)
print(tt.head())

annotation = pd.DataFrame({"ID": features[:5], "Gene.symbol": ["TP53", "MYC", "EGFR", "KRAS", "BRCA1"]})
print(arraydeg.merge_annotation(limma.select_degs(tt, lfc=1.0), annotation))
