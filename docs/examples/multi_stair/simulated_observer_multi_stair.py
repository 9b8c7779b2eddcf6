"""
Simulated observer: interleaved QUEST staircases
------------------------------------------------

This script runs a full synthetic multi-staircase session:

1. Define a 'ground-truth' observer with a known threshold per condition.
2. Interleave one QUEST staircase per condition with a MultiStairHandler
   (random passes, fixed seed).
3. On each trial, simulate the observer's response at the proposed
   intensity and feed it back to the scheduler.
4. Save the trial log as csv and plot each staircase's track.

The simulated response follows the same Weibull psychometric function the
QUEST posterior assumes:
    p_correct = delta * gamma + (1 - delta) * (1 - (1 - gamma) * exp(-10 ** (beta * (x - t))))
shifted so that p_correct(t) = p_threshold.

Note:
- Using the QUEST observer model to simulate responses is a well-specified
  setting; the final estimates should land close to the true thresholds.
- Re-running with the same seed replays the session exactly.
"""

from __future__ import annotations

import logging
import os
import sys

import matplotlib.pyplot as plt

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../../../src")))
# --8<-- [start:imports]
from psystair.data.dataset import ExperimentData
from psystair.data.io import save_entries_csv
from psystair.session.multi_stair import MultiStairHandler

# --8<-- [end:imports]

# Where to save the trial log and figures
OUTPUT_DIR = os.path.join(os.path.dirname(__file__), "plots")
SEED = 2024

# ground-truth thresholds, one per condition
TRUE_THRESHOLDS = {"low_contrast": -1.2, "high_contrast": -0.6}

conditions = [
    {"label": "low_contrast", "startVal": -1.0, "startValSd": 0.5, "nTrials": 40},
    {"label": "high_contrast", "startVal": -1.0, "startValSd": 0.5, "nTrials": 40},
]

logging.basicConfig(level=logging.INFO)

# --8<-- [start:session]
data = ExperimentData(name="quest_demo", extra_info={"participant": "sim01", "session": "001"})
stairs = MultiStairHandler(
    "log_contrast",
    conditions=conditions,
    method="random",
    n_trials=80,
    random_seed=SEED,
)
data.add_loop(stairs)

for trial in stairs:
    staircase = stairs.current_staircase
    # the QUEST handler also carries the observer model used for simulation
    response = staircase.simulate(TRUE_THRESHOLDS[staircase.name])
    stairs.add_response(response)
    data.next_entry()
# --8<-- [end:session]

for staircase in stairs.staircases:
    low, high = staircase.conf_interval()
    print(
        f"{staircase.name}: true={TRUE_THRESHOLDS[staircase.name]:+.3f} "
        f"estimate={staircase.mean():+.3f} sd={staircase.sd():.3f} "
        f"90% CI=[{low:+.3f}, {high:+.3f}]"
    )

os.makedirs(OUTPUT_DIR, exist_ok=True)
csv_path = save_entries_csv(data, OUTPUT_DIR)
print(f"Saved trial log to {csv_path}")

# ---------- Plot staircase tracks ----------
fig, ax = plt.subplots(figsize=(7, 4))
for staircase in stairs.staircases:
    line = ax.plot(staircase.intensities, marker="o", markersize=3, label=staircase.name)[0]
    ax.axhline(TRUE_THRESHOLDS[staircase.name], color=line.get_color(), linestyle="--", linewidth=1)
ax.set_xlabel("trial (within staircase)")
ax.set_ylabel("log contrast")
ax.set_title("Interleaved QUEST staircases")
ax.legend()
plt.tight_layout()

plot_path = os.path.join(OUTPUT_DIR, "multi_stair_tracks.png")
fig.savefig(plot_path, dpi=200, bbox_inches="tight")
print(f"Saved plot to {plot_path}")
plt.show()
