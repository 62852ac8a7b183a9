"""
Figures for the analysis report.
"""

from tissuede_pipeline.report.figures import (
    plot_filter_stats,
    plot_log_cpm_density,
    plot_mean_difference,
    render_figures,
)

__all__ = [
    "plot_filter_stats",
    "plot_log_cpm_density",
    "plot_mean_difference",
    "render_figures",
]
