"""Create a volcano plot from differential expression results."""

import logging

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns

logger = logging.getLogger(__name__)


def volcano_plot(
    results: pd.DataFrame,
    logfc_col: str = "log_fc",
    fdr_col: str = "adj_p_value",
    fdr_threshold: float = 0.05,
    logfc_threshold: float = 2.0,
    figsize: tuple = (10, 8),
    title: str = "Volcano Plot",
    xlabel: str = "log₂(Fold Change)",
    ylabel: str = "-log₁₀(Adjusted p-value)",
    save_path: str = None,
    **kwargs
) -> plt.Figure:
    """
    Create a publication-quality volcano plot.

    Points passing both thresholds (the DEG selection rule) are highlighted
    and split into up- and down-regulated.

    Args:
        results: DataFrame with differential expression results
        logfc_col: Column name for log fold change (default: "log_fc")
        fdr_col: Column name for adjusted p-value (default: "adj_p_value")
        fdr_threshold: Adjusted p-value threshold (default: 0.05)
        logfc_threshold: Absolute log fold change threshold (default: 2.0)
        figsize: Figure size tuple (default: (10, 8))
        title: Plot title
        xlabel: X-axis label
        ylabel: Y-axis label
        save_path: Path to save figure (optional)
        **kwargs: Additional arguments for customization
            - point_size: Size of points (default: 30)
            - up_color: Color for up-regulated points (default: '#e74c3c')
            - down_color: Color for down-regulated points (default: '#3498db')
            - nonsig_color: Color for other points (default: '#95a5a6')
            - text_color: Color for axis text (default: '#2c3e50')
            - alpha: Transparency (default: 0.7)
            - dpi: DPI for saved figure (default: 300)

    Returns:
        matplotlib.figure.Figure: The figure object

    Examples:
        >>> fig = volcano_plot(res.results, title="case vs control")
        >>> fig = volcano_plot(res.results, fdr_threshold=0.01, save_path="volcano.png")
    """
    point_size = kwargs.get('point_size', 30)
    up_color = kwargs.get('up_color', '#e74c3c')
    down_color = kwargs.get('down_color', '#3498db')
    nonsig_color = kwargs.get('nonsig_color', '#95a5a6')
    text_color = kwargs.get('text_color', '#2c3e50')
    alpha = kwargs.get('alpha', 0.7)
    dpi = kwargs.get('dpi', 300)

    df = results.loc[np.isfinite(results[fdr_col]) & np.isfinite(results[logfc_col])].copy()

    # Floor at the smallest positive value so p = 0 stays on the plot
    fdr = df[fdr_col].to_numpy(dtype=float)
    positive = fdr[fdr > 0]
    floor = positive.min() if positive.size else 1e-300
    df['neg_log10_fdr'] = -np.log10(np.maximum(fdr, floor))

    sig_mask = (df[fdr_col] < fdr_threshold) & (df[logfc_col].abs() > logfc_threshold)
    df['status'] = np.where(
        sig_mask, np.where(df[logfc_col] > 0, 'Up', 'Down'), 'Not significant'
    )

    fig, ax = plt.subplots(figsize=figsize, dpi=100)
    sns.scatterplot(
        data=df,
        x=logfc_col,
        y='neg_log10_fdr',
        hue='status',
        hue_order=['Not significant', 'Down', 'Up'],
        palette={'Not significant': nonsig_color, 'Down': down_color, 'Up': up_color},
        s=point_size,
        alpha=alpha,
        linewidth=0,
        ax=ax,
    )

    # Threshold lines
    for x in (-logfc_threshold, logfc_threshold):
        ax.axvline(x, color='#34495e', linestyle='--', linewidth=1.5, alpha=0.6, zorder=0)
    ax.axhline(-np.log10(fdr_threshold), color='#34495e', linestyle='--', linewidth=1.5, alpha=0.6, zorder=0)

    ax.set_xlabel(xlabel, fontsize=13, fontweight='bold', color=text_color)
    ax.set_ylabel(ylabel, fontsize=13, fontweight='bold', color=text_color)
    ax.set_title(title, fontsize=15, fontweight='bold', color=text_color, pad=20)
    ax.grid(True, alpha=0.2, linestyle=':', linewidth=0.8)
    ax.set_axisbelow(True)
    ax.legend(loc='upper right', frameon=True, fontsize=10, framealpha=0.95)

    n_up = int((df['status'] == 'Up').sum())
    n_down = int((df['status'] == 'Down').sum())
    stats_text = (
        f'Significant: {n_up + n_down}/{len(df)}\n'
        f'Up-regulated: {n_up}\n'
        f'Down-regulated: {n_down}'
    )
    ax.text(
        0.02, 0.98,
        stats_text,
        transform=ax.transAxes,
        fontsize=10,
        verticalalignment='top',
        bbox=dict(boxstyle='round', facecolor='white', alpha=0.85, edgecolor=text_color, linewidth=1.5),
        family='monospace',
        color=text_color
    )

    fig.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=dpi, bbox_inches='tight', facecolor='white')
        logger.info("volcano plot saved to %s", save_path)

    return fig
